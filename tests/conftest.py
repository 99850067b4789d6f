import pytest
import pytest_asyncio

from sqllab.db.seed import seed
from sqllab.db.session import DatabaseRegistry


@pytest.fixture(autouse=True)
def audit_log(tmp_path, monkeypatch):
    # keep audit lines out of the working directory
    path = tmp_path / "audit.log"
    monkeypatch.setenv("AUDIT_LOG_PATH", str(path))
    return path


@pytest_asyncio.fixture
async def registry(tmp_path):
    """Registry over a data dir holding one seeded session, ``demo``."""
    data_dir = tmp_path / "sessions"
    await seed(str(data_dir / "demo.db"))
    reg = DatabaseRegistry(str(data_dir))
    yield reg
    await reg.close_all()
