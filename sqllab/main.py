import os
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqllab.core.audit import audit_middleware_factory
from sqllab.core.errors import SQLLabError
from sqllab.core.logging import setup_logging, get_logger
from sqllab.db.session import DatabaseRegistry, get_registry
from sqllab.services.sql_engine import MAX_LIMIT, QUERY_TIMEOUT_MS
from sqllab.tools.lab_query import router as query_router
from sqllab.tools.lab_schema import router as schema_router
from sqllab.tools.result_view import router as view_router
from sqllab.ui.result_table import use_system_collation


setup_logging()
use_system_collation()
logger = get_logger("sqllab.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await get_registry().close_all()


def cors_origins():
    raw = os.getenv("SQLLAB_CORS_ORIGINS", "http://localhost:3000")
    return [o.strip() for o in raw.split(",") if o.strip()]


app = FastAPI(title="SQL Lab", lifespan=lifespan)
app.middleware('http')(audit_middleware_factory())

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(schema_router, prefix="/lab")
app.include_router(query_router, prefix="/lab")
app.include_router(view_router, prefix="/lab")


@app.middleware("http")
async def add_request_id_and_log(request: Request, call_next):
    request_id = str(uuid4())
    start = time.time()
    logger.info(f"request_start request_id={request_id} method={request.method} path={request.url.path}")
    try:
        response = await call_next(request)
    except Exception as exc:  # catch so we can log and re-raise handled by exception handlers
        logger.exception(f"unhandled error request_id={request_id} path={request.url.path} error={exc}")
        raise
    duration = (time.time() - start) * 1000
    logger.info(f"request_end request_id={request_id} method={request.method} path={request.url.path} status_code={response.status_code} duration_ms={duration:.1f}")
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(SQLLabError)
async def lab_error_handler(request: Request, exc: SQLLabError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"type": "InternalError", "message": "Internal server error"},
        },
    )


@app.get("/")
async def root():
    return {"status": "SQL Lab running", "max_rows": MAX_LIMIT, "query_timeout_ms": QUERY_TIMEOUT_MS}


@app.get("/health")
async def health(registry: DatabaseRegistry = Depends(get_registry)):
    return {
        "status": "ok",
        "components": {
            "sqlite": {"status": "ok", "data_dir": registry.data_dir, "sessions": len(registry.sessions())},
        },
    }
