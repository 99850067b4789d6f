import asyncio
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

import aiosqlite

from sqllab.core.logging import get_logger

BASE_DIR = os.path.dirname(__file__)
DATA_DIR = os.getenv("SQLLAB_DATA_DIR", os.path.join(BASE_DIR, "data"))

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]+$")

logger = get_logger("sqllab.session")


class DatabaseRegistry:
    """Maps session ids to open, read-only SQLite handles.

    Each session owns one database file, ``<data_dir>/<session_id>.db``, created
    elsewhere. Handles are opened lazily on first lookup and live until
    ``close``/``close_all``; nothing else in the lab opens or closes them.
    """

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = data_dir or DATA_DIR
        self._handles: Dict[str, aiosqlite.Connection] = {}
        self._lock = asyncio.Lock()

    def path_for(self, session_id: str) -> Optional[str]:
        if not session_id or not _SESSION_ID.match(session_id):
            return None
        return os.path.join(self.data_dir, f"{session_id}.db")

    def register(self, session_id: str, conn: aiosqlite.Connection):
        """Attach an already-open handle, e.g. one owned by an outer session manager."""
        self._handles[session_id] = conn

    async def get(self, session_id: str) -> Optional[aiosqlite.Connection]:
        """Return the session's handle, or None when the session has no database."""
        if session_id in self._handles:
            return self._handles[session_id]

        path = self.path_for(session_id)
        if path is None or not os.path.isfile(path):
            return None

        async with self._lock:
            # another task may have opened it while we waited
            if session_id in self._handles:
                return self._handles[session_id]
            conn = await aiosqlite.connect(Path(path).absolute().as_uri() + "?mode=ro", uri=True)
            self._handles[session_id] = conn
            logger.info("opened session database session=%s path=%s", session_id, path)
            return conn

    def sessions(self) -> List[str]:
        """Session ids that currently have a database, open or on disk."""
        found = set(self._handles)
        if os.path.isdir(self.data_dir):
            for name in os.listdir(self.data_dir):
                stem, ext = os.path.splitext(name)
                if ext == ".db" and _SESSION_ID.match(stem):
                    found.add(stem)
        return sorted(found)

    async def close(self, session_id: str):
        conn = self._handles.pop(session_id, None)
        if conn is not None:
            await conn.close()
            logger.info("closed session database session=%s", session_id)

    async def close_all(self):
        for session_id in list(self._handles):
            await self.close(session_id)


_REGISTRY: Optional[DatabaseRegistry] = None


def get_registry() -> DatabaseRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = DatabaseRegistry()
    return _REGISTRY
