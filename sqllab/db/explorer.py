import aiosqlite


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


async def list_tables(db: aiosqlite.Connection):
    cur = await db.execute(
        "SELECT name FROM sqlite_master "
        "WHERE type='table' AND name NOT LIKE 'sqlite_%' "
        "ORDER BY name"
    )
    rows = await cur.fetchall()
    await cur.close()
    return [r[0] for r in rows]


async def table_info(db: aiosqlite.Connection, table_name: str):
    cur = await db.execute(f"PRAGMA table_info({quote_identifier(table_name)})")
    rows = await cur.fetchall()
    await cur.close()
    # Return list of (cid, name, type, notnull, dflt_value, pk)
    return rows


async def explain_query(db: aiosqlite.Connection, sql: str):
    cur = await db.execute(f"EXPLAIN QUERY PLAN {sql}")
    rows = await cur.fetchall()
    await cur.close()
    # (id, parent, notused, detail)
    return rows
