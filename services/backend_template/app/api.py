import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from . import schemas

router = APIRouter()


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision, e.g. ``2024-01-01T00:00:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/health", response_model=schemas.HealthResponse)
async def health(request: Request) -> schemas.HealthResponse:
    settings = request.app.state.settings
    return schemas.HealthResponse(
        timestamp=utc_timestamp(),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        environment=settings.environment,
        version=settings.service_version,
    )


@router.get("/ready", response_model=schemas.ReadyResponse)
async def ready() -> schemas.ReadyResponse:
    # No backing services yet; add per-dependency checks here.
    return schemas.ReadyResponse(timestamp=utc_timestamp())


@router.get("/", response_model=schemas.RootResponse)
async def root() -> schemas.RootResponse:
    return schemas.RootResponse(
        message="Welcome to the backend template",
        documentation="/health for health checks, /ready for readiness checks",
        timestamp=utc_timestamp(),
    )
