"""Application settings loaded from environment variables."""

from __future__ import annotations

from importlib import metadata
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic._internal._model_construction import ModelMetaclass

DISTRIBUTION_NAME = "backend-template"
DEFAULT_SERVICE_NAME = "ts-backend-template"
DEFAULT_SERVICE_VERSION = "1.0.0"
DEFAULT_PORT = 3000


class SettingsMeta(ModelMetaclass):
    """Metaclass to allow overriding fields without type annotations."""

    def __new__(mcls, name, bases, namespace, **kwargs):  # type: ignore[override]
        annotations = dict(namespace.get("__annotations__", {}))
        for base in bases:
            for field, ann in getattr(base, "__annotations__", {}).items():
                if field in namespace and field not in annotations:
                    annotations[field] = ann
        namespace["__annotations__"] = annotations
        return super().__new__(mcls, name, bases, namespace, **kwargs)


def _distribution_field(key: str) -> str | None:
    """Read ``Name``/``Version`` of the installed distribution, if any."""

    try:
        return metadata.metadata(DISTRIBUTION_NAME)[key] or None
    except (metadata.PackageNotFoundError, KeyError):
        return None


class Settings(BaseSettings, metaclass=SettingsMeta):
    """Service settings.

    Every value has a default so the app and its tests can be imported without
    any environment configured. Malformed values fall back to the default
    instead of failing startup.
    """

    log_level: str = Field("info", alias="LOG_LEVEL")
    log_include_location: bool = Field(True, alias="LOG_INCLUDE_LOCATION")
    node_env: str | None = Field(default=None, alias="NODE_ENV")

    otel_service_name: str | None = Field(default=None, alias="OTEL_SERVICE_NAME")
    otel_service_version: str | None = Field(
        default=None, alias="OTEL_SERVICE_VERSION"
    )
    otel_tracing_enabled: bool = Field(True, alias="OTEL_TRACING_ENABLED")
    otel_console_exporter: bool = Field(False, alias="OTEL_CONSOLE_EXPORTER")
    otel_exporter_otlp_traces_endpoint: str | None = Field(
        default=None, alias="OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"
    )

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(DEFAULT_PORT, alias="PORT")

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "case_sensitive": False,
    }

    @field_validator("log_level", mode="before")
    @classmethod
    def _blank_level(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            return "info"
        return str(value).strip().lower()

    @field_validator("log_include_location", "otel_tracing_enabled", mode="before")
    @classmethod
    def _enabled_unless_false(cls, value: Any) -> bool:
        # Only the literal "false" switches these off.
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() != "false"

    @field_validator("otel_console_exporter", mode="before")
    @classmethod
    def _disabled_unless_true(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() == "true"

    @field_validator("port", mode="before")
    @classmethod
    def _port_or_default(cls, value: Any) -> int:
        try:
            port = int(str(value).strip())
        except (TypeError, ValueError):
            return DEFAULT_PORT
        return port if port > 0 else DEFAULT_PORT

    @property
    def environment(self) -> str:
        return self.node_env or "development"

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    @property
    def service_name(self) -> str:
        return (
            self.otel_service_name
            or _distribution_field("Name")
            or DEFAULT_SERVICE_NAME
        )

    @property
    def service_version(self) -> str:
        return (
            self.otel_service_version
            or _distribution_field("Version")
            or DEFAULT_SERVICE_VERSION
        )

    @property
    def console_exporter(self) -> bool:
        return self.otel_console_exporter or self.is_development


def get_settings() -> Settings:
    """Build settings from the current environment."""

    return Settings()
