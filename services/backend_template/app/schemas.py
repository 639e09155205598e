from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str
    uptime: float
    environment: str
    version: str


class ReadyResponse(BaseModel):
    status: str = "ready"
    timestamp: str
    dependencies: dict[str, Any] = Field(default_factory=dict)


class RootResponse(BaseModel):
    message: str
    documentation: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    timestamp: str
