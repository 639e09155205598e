"""Entrypoint for the backend template service."""

from __future__ import annotations

import time
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.common.logging import get_logger
from src.common.metrics import setup_metrics
from src.common.settings import Settings
from src.common.telemetry import initialize_tracing, shutdown_tracing

from . import deps, schemas
from .api import router, utc_timestamp
from .middleware import RequestLoggingMiddleware


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def _error_body(error: str, message: str) -> dict[str, Any]:
    return schemas.ErrorResponse(
        error=error, message=message, timestamp=utc_timestamp()
    ).model_dump()


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            body = _error_body("Not Found", "The requested endpoint does not exist")
        else:
            body = _error_body(_reason(exc.status_code), str(exc.detail))
        return JSONResponse(body, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        # Runs outside RequestLoggingMiddleware, which never got to set the header.
        log = getattr(request.state, "logger", request.app.state.logger)
        log.error(
            "application_error",
            error=str(exc),
            path=request.url.path,
            exc_info=exc,
        )
        if request.app.state.settings.is_development:
            message = str(exc)
        else:
            message = "Something went wrong"
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            _error_body("Internal Server Error", message),
            status_code=500,
            headers={"x-request-id": request_id} if request_id else None,
        )


def create_app(settings: Settings | None = None, logger: Any = None) -> FastAPI:
    """Compose the service: settings, logger, tracing, middleware and routes."""

    settings = settings if settings is not None else deps.get_settings()
    logger = logger if logger is not None else get_logger()

    app = FastAPI(title=settings.service_name, version=settings.service_version)
    app.state.settings = settings
    app.state.logger = logger
    app.state.started_at = time.monotonic()

    setup_metrics(app, settings.service_name)
    app.add_middleware(RequestLoggingMiddleware)
    _register_error_handlers(app)
    app.include_router(router)

    # Instrumented last so the server span wraps the request logging.
    app.state.tracer_provider = initialize_tracing(settings, logger, app)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await shutdown_tracing(app.state.tracer_provider, logger)

    return app


app = create_app()
