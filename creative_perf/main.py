import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from creative_perf.analysis_api import analysis_router
from creative_perf.api import router
from creative_perf.db import SessionLocal
from creative_perf.exceptions import (
    CreativeReadError,
    StorageError,
    StorageNotConnectedError,
    StorageQuotaExceededError,
)
from creative_perf.storage import ConnectionState

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = SessionLocal()
    try:
        app.state.storage_connection.connect(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Creative Performance", version="0.1.0", lifespan=lifespan)
app.state.storage_connection = ConnectionState()
app.include_router(router)
app.include_router(analysis_router)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error_response(status_code: int, exc: StorageError | CreativeReadError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "details": exc.details})


@app.exception_handler(StorageNotConnectedError)
async def storage_not_connected_handler(request: Request, exc: StorageNotConnectedError):
    return _error_response(503, exc)


@app.exception_handler(StorageQuotaExceededError)
async def storage_quota_handler(request: Request, exc: StorageQuotaExceededError):
    logger.error("Storage quota exceeded: %s", exc.message)
    return _error_response(507, exc)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage error on %s: %s", request.url.path, exc.message)
    return _error_response(500, exc)


@app.exception_handler(CreativeReadError)
async def creative_read_error_handler(request: Request, exc: CreativeReadError):
    return _error_response(422, exc)
