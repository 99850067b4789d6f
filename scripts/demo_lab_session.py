import asyncio
import os
import sys

from sqllab.db.seed import seed
from sqllab.db.session import DatabaseRegistry, DATA_DIR
from sqllab.services.schema import get_schema
from sqllab.ui.lab_view import LabView


async def main(session_id: str = "demo"):
    path = await seed(os.path.join(DATA_DIR, f"{session_id}.db"))
    print("Seeded:", path)

    registry = DatabaseRegistry()
    try:
        print("Tables:", [t.name for t in await get_schema(registry, session_id)])

        view = LabView(session_id, registry)
        result = await view.run("SELECT id, name, region FROM users;")
        print(f"Fetched {result.row_count} rows in {result.duration} ms (limited={result.limited})")

        view.table.toggle_sort(2)
        print(view.table.render_text(max_rows=10))

        view.table.copy_csv()
        print("CSV header:", view.table.clipboard.text.splitlines()[0])
    finally:
        await registry.close_all()


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:2]))
