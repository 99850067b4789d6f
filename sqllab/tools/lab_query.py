from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from sqllab.db.session import DatabaseRegistry, get_registry
from sqllab.services.models import QueryResult
from sqllab.services.sql_engine import explain_query
from sqllab.ui.lab_view import ViewRegistry, get_view_registry
from sqllab.ui.result_table import render_cell

router = APIRouter()


class SQLPayload(BaseModel):
    sql: str


def jsonable_result(result: QueryResult) -> Dict[str, Any]:
    """QueryResult as JSON; BLOB cells are sent as their hex literal text."""
    payload = result.to_dict()
    payload["rows"] = [
        [render_cell(v) if isinstance(v, (bytes, bytearray, memoryview)) else v for v in row]
        for row in payload["rows"]
    ]
    return payload


@router.post("/{session_id}/query")
async def run_query(
    session_id: str,
    payload: SQLPayload,
    registry: DatabaseRegistry = Depends(get_registry),
    views: ViewRegistry = Depends(get_view_registry),
):
    view = views.get(session_id, registry)
    result = await view.run(payload.sql)
    return {"success": True, "result": jsonable_result(result)}


@router.post("/{session_id}/explain")
async def explain(
    session_id: str,
    payload: SQLPayload,
    registry: DatabaseRegistry = Depends(get_registry),
):
    plan = await explain_query(registry, session_id, payload.sql)
    return {"success": True, "plan": plan}
