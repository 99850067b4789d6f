from typing import List

from sqllab.core.errors import NotFoundError
from sqllab.db.explorer import list_tables, table_info
from sqllab.db.session import DatabaseRegistry
from sqllab.services.models import ColumnInfo, TableSchema


async def get_schema(registry: DatabaseRegistry, session_id: str) -> List[TableSchema]:
    """Describe every user table of the session database, ordered by name.

    SQLite's own ``sqlite_*`` tables are left out. Nothing is cached.
    """
    db = await registry.get(session_id)
    if db is None:
        raise NotFoundError(f"No database found for session '{session_id}'")

    schema = []
    for table in await list_tables(db):
        info = await table_info(db, table)
        schema.append(
            TableSchema(
                name=table,
                columns=[
                    ColumnInfo(name=row[1], type=row[2], notnull=row[3] == 1, pk=row[5] > 0)
                    for row in info
                ],
            )
        )
    return schema
