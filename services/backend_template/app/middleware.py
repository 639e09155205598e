from __future__ import annotations

import uuid
from time import perf_counter

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.common.logging import create_child_logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Per-request child logger, access log lines and ``x-request-id`` header."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        log = create_child_logger(
            {
                "request_id": request_id,
                "method": request.method,
                "url": str(request.url),
                "user_agent": request.headers.get("user-agent"),
            },
            request.app.state.logger,
        )
        request.state.logger = log
        request.state.request_id = request_id

        log.info("request_started")
        start = perf_counter()
        # Also visible to plain structlog.get_logger() calls inside handlers.
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                log.error(
                    "request_failed",
                    elapsed_ms=round((perf_counter() - start) * 1000.0, 2),
                )
                raise

        response.headers["x-request-id"] = request_id
        log.info(
            "request_completed",
            status=response.status_code,
            elapsed_ms=round((perf_counter() - start) * 1000.0, 2),
        )
        return response
