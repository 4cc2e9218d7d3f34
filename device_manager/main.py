"""Entry point HTTP del device manager.

    uvicorn device_manager.main:app
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .errors import (
    DeviceManagerError,
    LinkInconsistency,
    LockTimeout,
    NotFoundError,
    PersistenceError,
    ProvisioningError,
    ValidationError,
)
from .plugin import DeviceManager
from .transports.http import router

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (LinkInconsistency, 400),
    (NotFoundError, 404),
    (ProvisioningError, 403),
    (LockTimeout, 503),
    (PersistenceError, 500),
)


def error_status(error: DeviceManagerError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


async def _device_manager_error_handler(request: Request, exc: DeviceManagerError) -> JSONResponse:
    status_code = error_status(exc)
    if status_code >= 500:
        logger.error("[HTTP] %s %s failed: %s", request.method, request.url.path, exc)

    body = {"error": type(exc).__name__, "message": str(exc)}
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def create_app(manager: Optional[DeviceManager] = None) -> FastAPI:
    """App FastAPI con el device manager dado (o uno construido desde el entorno)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.device_manager.close()

    app = FastAPI(title="IoT Device Manager", version="0.1.0", lifespan=lifespan)
    app.state.device_manager = manager or DeviceManager()

    app.add_exception_handler(DeviceManagerError, _device_manager_error_handler)
    app.include_router(router)

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_configure_logging()
app = create_app()
