"""FastAPI application with lifespan, error mapping and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from warmset.api.routes import health, inference, models
from warmset.core.config import AppSettings
from warmset.core.exceptions import (
    InvalidReferenceError,
    NoBindingError,
    NotActiveError,
    NotConfiguredError,
    NotFoundError,
    ParseFailureError,
    QualityGateError,
    RepositoryError,
    WarmsetError,
)
from warmset.core.logging import setup_logging
from warmset.runtime import AgentRuntime, create_runtime

logger = structlog.get_logger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS_CODES: tuple[tuple[type[WarmsetError], int], ...] = (
    (NotFoundError, 404),
    (NotActiveError, 409),
    (NoBindingError, 409),
    (QualityGateError, 409),
    (InvalidReferenceError, 422),
    (ParseFailureError, 422),
    (RepositoryError, 502),
    (NotConfiguredError, 503),
)


def status_for(exc: WarmsetError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


async def warmset_error_handler(request: Request, exc: WarmsetError) -> JSONResponse:
    status = status_for(exc)
    logger.warning("request_failed", path=request.url.path, status=status,
                   error_type=type(exc).__name__, error=str(exc))
    return JSONResponse(status_code=status,
                        content={"error": type(exc).__name__, "detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    if getattr(app.state, "runtime", None) is None:
        settings = AppSettings()
        setup_logging(settings.log_level, settings.log_format)
        app.state.runtime = create_runtime(settings)
    yield


def create_app(runtime: AgentRuntime | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="warmset model binding and generation service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.add_exception_handler(WarmsetError, warmset_error_handler)
    app.include_router(health.router)
    app.include_router(models.router, prefix="/models")
    app.include_router(inference.router)
    return app
