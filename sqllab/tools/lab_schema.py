from fastapi import APIRouter, Depends

from sqllab.db.session import DatabaseRegistry, get_registry
from sqllab.services.schema import get_schema

router = APIRouter()


@router.get("/sessions")
async def list_sessions(registry: DatabaseRegistry = Depends(get_registry)):
    return {"sessions": registry.sessions()}


@router.get("/{session_id}/schema")
async def schema(session_id: str, registry: DatabaseRegistry = Depends(get_registry)):
    tables = await get_schema(registry, session_id)
    return {"success": True, "tables": [t.to_dict() for t in tables]}
