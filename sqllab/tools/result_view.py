from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from sqllab.db.session import DatabaseRegistry, get_registry
from sqllab.ui.lab_view import ViewRegistry, get_view_registry

router = APIRouter()


class SortRequest(BaseModel):
    column: int


@router.get("/{session_id}/view")
async def get_view(
    session_id: str,
    registry: DatabaseRegistry = Depends(get_registry),
    views: ViewRegistry = Depends(get_view_registry),
):
    return views.get(session_id, registry).table.state()


@router.post("/{session_id}/view/sort")
async def sort_view(
    session_id: str,
    req: SortRequest,
    registry: DatabaseRegistry = Depends(get_registry),
    views: ViewRegistry = Depends(get_view_registry),
):
    table = views.get(session_id, registry).table
    try:
        table.toggle_sort(req.column)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return table.state()


@router.post("/{session_id}/view/reset")
async def reset_view(
    session_id: str,
    registry: DatabaseRegistry = Depends(get_registry),
    views: ViewRegistry = Depends(get_view_registry),
):
    table = views.get(session_id, registry).table
    table.reset_sort()
    return table.state()


@router.post("/{session_id}/view/copy_csv")
async def copy_csv(
    session_id: str,
    registry: DatabaseRegistry = Depends(get_registry),
    views: ViewRegistry = Depends(get_view_registry),
):
    table = views.get(session_id, registry).table
    if table.result is None:
        raise HTTPException(status_code=409, detail="There is no result to export")
    copied = table.copy_csv()
    return Response(
        content=table.last_copied if copied else table.to_csv(),
        media_type="text/csv",
        headers={"X-Rows-Copied": str(len(table.result.rows)) if copied else "0"},
    )
