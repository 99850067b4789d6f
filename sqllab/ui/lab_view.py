import asyncio
from typing import Dict, Optional

from sqllab.core.errors import QueryTimeoutError, SQLLabError
from sqllab.core.logging import get_logger
from sqllab.db.session import DatabaseRegistry
from sqllab.services.models import QueryResult
from sqllab.services.sql_engine import QUERY_TIMEOUT_MS, execute_raw_sql
from sqllab.ui.result_table import ResultTable

logger = get_logger("sqllab.ui")


async def run_with_timeout(registry: DatabaseRegistry, session_id: str, sql: str,
                           timeout_ms: int = QUERY_TIMEOUT_MS) -> QueryResult:
    """Run a lab query, interrupting SQLite once the time budget is spent.

    The session handle is shared, so the interrupt also aborts any other
    statement running on it at that moment.
    """
    try:
        return await asyncio.wait_for(
            execute_raw_sql(registry, session_id, sql), timeout=timeout_ms / 1000
        )
    except asyncio.TimeoutError:
        db = await registry.get(session_id)
        if db is not None:
            await db.interrupt()
        logger.warning("query timed out session=%s timeout_ms=%d", session_id, timeout_ms)
        raise QueryTimeoutError(f"Query exceeded the {timeout_ms} ms time limit") from None


class LabView:
    """Coordinates one session's result table with the queries run for it."""

    def __init__(self, session_id: str, registry: DatabaseRegistry, table: Optional[ResultTable] = None):
        self.session_id = session_id
        self.registry = registry
        self.table = table or ResultTable()

    async def run(self, sql: str) -> QueryResult:
        """Run a query and show its outcome; lab errors are shown, then re-raised."""
        self.table.reset_sort()
        try:
            result = await run_with_timeout(self.registry, self.session_id, sql)
        except SQLLabError as e:
            self.table.show(error=e.message)
            raise
        self.table.show(result=result)
        return result


class ViewRegistry:
    def __init__(self):
        self._views: Dict[str, LabView] = {}

    def get(self, session_id: str, registry: DatabaseRegistry) -> LabView:
        view = self._views.get(session_id)
        if view is None or view.registry is not registry:
            view = LabView(session_id, registry)
            view.table.on_copied(
                lambda rows, sid=session_id: logger.info("csv copied session=%s rows=%d", sid, rows)
            )
            self._views[session_id] = view
        return view

    def drop(self, session_id: str):
        self._views.pop(session_id, None)


_VIEWS: Optional[ViewRegistry] = None


def get_view_registry() -> ViewRegistry:
    global _VIEWS
    if _VIEWS is None:
        _VIEWS = ViewRegistry()
    return _VIEWS
