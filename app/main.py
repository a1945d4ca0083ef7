from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api import router
from datastore.errors import StorageIOError
from datastore.sensor_db import build_default_store
from logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # Opening the store up front runs any pending schema migration before
    # the first request is served.
    build_default_store()
    try:
        yield
    finally:
        build_default_store.cache_clear()


async def storage_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Scalar Reading Store",
        description="Time-ordered storage and range queries for scalar sensor readings.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(StorageIOError, storage_error_handler)
    app.include_router(router)
    return app

app = create_app()
