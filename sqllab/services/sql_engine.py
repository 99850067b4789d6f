import re
import sqlite3
import time
from typing import Any, Dict, List, Tuple

from sqllab.core.errors import ExecutionError, NotFoundError, ValidationError
from sqllab.core.logging import get_logger
from sqllab.db import explorer
from sqllab.db.session import DatabaseRegistry
from sqllab.services.models import QueryResult

logger = get_logger("sqllab.engine")

# Most rows a lab query may return
MAX_LIMIT = 1000

# Advisory budget for the caller; execute_raw_sql does not cancel by itself
QUERY_TIMEOUT_MS = 10000

READONLY_PHRASE = "Read-only mode: "

# LIMIT n | LIMIT n OFFSET m | LIMIT offset, n -- only at the end of the statement
_TRAILING_LIMIT = re.compile(
    r"\bLIMIT\s+(\d+)(?:\s*,\s*(\d+))?(?:\s+OFFSET\s+\d+)?\s*;?\s*$",
    re.IGNORECASE,
)
_TRAILING_TERMINATOR = re.compile(r";\s*$")

_ERROR_PREFIXES = (
    ("SQLITE_ERROR: ", ""),
    ("SQLITE_READONLY: ", READONLY_PHRASE),
)


def is_select(sql: str) -> bool:
    """Prefix check only: comments or CTEs in front of SELECT are not recognised."""
    return sql.strip().upper().startswith("SELECT")


def enforce_limit(sql: str) -> Tuple[str, bool]:
    """Cap a SELECT at MAX_LIMIT rows by rewriting its trailing LIMIT clause.

    Returns the statement to run and whether the cap was applied. This is a
    textual rewrite: a statement with no recognisable trailing LIMIT gets one
    appended, and a larger row count is replaced in place. In the legacy
    ``LIMIT offset, count`` form the second number is the row count.
    """
    trimmed = sql.strip()
    match = _TRAILING_LIMIT.search(trimmed)
    if match is None:
        without_terminator = _TRAILING_TERMINATOR.sub("", trimmed)
        # own line, so a trailing -- comment cannot swallow it
        return f"{without_terminator}\nLIMIT {MAX_LIMIT}", True

    # LIMIT a, b is offset a, count b: check b, or LIMIT 0, 5000 would slip through
    group = 2 if match.group(2) is not None else 1
    if int(match.group(group)) <= MAX_LIMIT:
        return trimmed, False

    start, end = match.span(group)
    return f"{trimmed[:start]}{MAX_LIMIT}{trimmed[end:]}", True


def sanitize_message(message: str) -> str:
    for prefix, replacement in _ERROR_PREFIXES:
        if message.startswith(prefix):
            return replacement + message[len(prefix):]
    return message


def sanitize_error(exc: BaseException) -> str:
    """Turn an engine exception into a message fit for the lab user.

    Python's sqlite3 keeps the result code on the exception rather than in the
    text, so read-only violations are recognised from ``sqlite_errorname`` too.
    """
    message = sanitize_message(str(exc))
    code = getattr(exc, "sqlite_errorname", "") or ""
    if code.startswith("SQLITE_READONLY") and not message.startswith(READONLY_PHRASE):
        message = READONLY_PHRASE + message
    return message


async def _resolve(registry: DatabaseRegistry, session_id: str):
    db = await registry.get(session_id)
    if db is None:
        raise NotFoundError(f"No database found for session '{session_id}'")
    return db


def _require_select(sql: str) -> str:
    trimmed = (sql or "").strip()
    if not is_select(trimmed):
        raise ValidationError("Only SELECT statements are supported")
    return trimmed


async def execute_raw_sql(registry: DatabaseRegistry, session_id: str, sql: str) -> QueryResult:
    """Run a user-supplied SELECT against the session database.

    Raises NotFoundError for an unknown session, ValidationError for anything
    that is not a SELECT, and ExecutionError (with a sanitized message) when
    the engine rejects the statement.
    """
    db = await _resolve(registry, session_id)
    trimmed = _require_select(sql)
    limited_sql, limited = enforce_limit(trimmed)

    start = time.perf_counter()
    try:
        async with db.execute(limited_sql) as cursor:
            fetched = await cursor.fetchall()
            description = cursor.description or ()
    except (sqlite3.Error, sqlite3.Warning) as e:
        message = sanitize_error(e)
        logger.warning("query failed session=%s error=%s", session_id, message)
        raise ExecutionError(message) from e
    duration = int(round((time.perf_counter() - start) * 1000))

    columns = tuple(d[0] for d in description)
    rows = tuple(tuple(r) for r in fetched)
    result = QueryResult(
        columns=columns,
        rows=rows,
        row_count=len(rows),
        duration=duration,
        limited=limited or len(rows) >= MAX_LIMIT,
    )
    logger.info(
        "query ok session=%s rows=%d duration_ms=%d limited=%s",
        session_id, result.row_count, duration, result.limited,
    )
    return result


async def explain_query(registry: DatabaseRegistry, session_id: str, sql: str) -> List[Dict[str, Any]]:
    """Return SQLite's query plan for a SELECT, without running it."""
    db = await _resolve(registry, session_id)
    trimmed = _require_select(sql)
    try:
        rows = await explorer.explain_query(db, trimmed)
    except (sqlite3.Error, sqlite3.Warning) as e:
        raise ExecutionError(sanitize_error(e)) from e
    return [{"id": r[0], "parent": r[1], "detail": r[3]} for r in rows]
