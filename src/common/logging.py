"""Structured logging with trace correlation.

Every record passes through :class:`TraceContextMixin`, which resolves the
active OpenTelemetry span and the calling source location at emission time.
Nothing is captured when a logger is built, so one logger serves every
request and every span.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import sys
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, TextIO

import structlog

from . import telemetry
from .settings import (
    DEFAULT_SERVICE_NAME,
    DEFAULT_SERVICE_VERSION,
    Settings,
    get_settings,
)

# Frames from these modules never count as the caller.
DEFAULT_IGNORED_MODULES: tuple[str, ...] = (__name__, "structlog", "logging")
_THIRD_PARTY_MARKERS = ("site-packages", "dist-packages")

# Above every stdlib level: nothing is emitted.
SILENT = logging.CRITICAL + 10

_LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "silent": SILENT,
}

# log_with_trace level -> bound logger method
_TRACE_LOG_METHODS = {
    "debug": "debug",
    "info": "info",
    "warn": "warning",
    "error": "error",
}


def level_number(level: str) -> int:
    """Map a level name to its stdlib number; unknown names mean ``info``."""

    return _LEVELS.get(str(level).strip().lower(), logging.INFO)


@dataclass(frozen=True)
class LoggerConfig:
    level: str = "info"
    include_location: bool = True
    is_production: bool = False
    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = DEFAULT_SERVICE_VERSION


def build_config(settings: Settings | None = None) -> LoggerConfig:
    """Resolve logger configuration from settings (the environment by default)."""

    settings = settings if settings is not None else get_settings()
    level = settings.log_level if settings.log_level in _LEVELS else "info"
    return LoggerConfig(
        level=level,
        include_location=settings.log_include_location,
        is_production=settings.is_production,
        service_name=settings.service_name,
        service_version=settings.service_version,
    )


def _is_ignored(module: str, ignore: Iterable[str]) -> bool:
    return any(module == prefix or module.startswith(prefix + ".") for prefix in ignore)


def resolve_caller_location(
    ignore: Iterable[str] = DEFAULT_IGNORED_MODULES,
) -> str | None:
    """Return ``"<file>:<line>"`` of the nearest application frame.

    Frames are skipped by module name and by third-party install path rather
    than by a fixed depth, so extra wrapper layers do not shift the result.
    Returns ``None`` when no such frame exists or the stack can't be read.
    """

    ignore = tuple(ignore)
    try:
        frame = sys._getframe(1)
    except (AttributeError, ValueError):
        return None

    try:
        while frame is not None:
            module = frame.f_globals.get("__name__", "")
            filename = frame.f_code.co_filename
            if not _is_ignored(module, ignore) and not any(
                marker in filename for marker in _THIRD_PARTY_MARKERS
            ):
                return f"{os.path.basename(filename)}:{frame.f_lineno}"
            frame = frame.f_back
    except Exception:  # noqa: BLE001
        return None
    finally:
        del frame
    return None


def _trace_context() -> telemetry.TraceContext | None:
    try:
        return telemetry.get_active_trace_context()
    except Exception:  # noqa: BLE001
        return None


def build_mixin_fields(include_location: bool) -> dict[str, str]:
    """Resolve the ambient fields for one record; unresolved keys are omitted."""

    fields: dict[str, str] = {}

    ctx = _trace_context()
    if ctx is not None:
        fields["trace_id"] = ctx.trace_id
        fields["span_id"] = ctx.span_id

    if include_location:
        caller = resolve_caller_location()
        if caller:
            fields["caller"] = caller

    return fields


class TraceContextMixin:
    """structlog processor merging :func:`build_mixin_fields` into each event.

    Values already on the event (bound or passed explicitly) take precedence.
    """

    def __init__(self, include_location: bool = True) -> None:
        self.include_location = include_location

    def __call__(
        self,
        _logger: structlog.typing.WrappedLogger,
        _name: str,
        event_dict: structlog.typing.EventDict,
    ) -> structlog.typing.EventDict:
        for key, value in build_mixin_fields(self.include_location).items():
            event_dict.setdefault(key, value)
        return event_dict


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        return repr(value)
    except Exception:  # noqa: BLE001
        return f"<unrepresentable {type(value).__name__}>"


class SafeRenderer:
    """Wraps a final renderer so a pathological value never loses the record.

    If rendering fails for any reason, every non-primitive value is replaced
    by its ``repr()`` (or a placeholder when that raises too) and the record
    is rendered again.
    """

    def __init__(self, renderer: structlog.typing.Processor) -> None:
        self._renderer = renderer

    def __call__(
        self,
        logger: structlog.typing.WrappedLogger,
        name: str,
        event_dict: structlog.typing.EventDict,
    ) -> str:
        # ConsoleRenderer pops keys while rendering, so hand it a copy.
        try:
            return self._renderer(logger, name, dict(event_dict))
        except Exception:  # noqa: BLE001
            plain = {str(k): _plain(v) for k, v in event_dict.items()}
            try:
                return self._renderer(logger, name, plain)
            except Exception:  # noqa: BLE001
                return json.dumps(plain)


def _drop_event(
    _logger: structlog.typing.WrappedLogger,
    _name: str,
    _event_dict: structlog.typing.EventDict,
) -> structlog.typing.EventDict:
    raise structlog.DropEvent


def _wrapper_class(level: int) -> type[structlog.typing.FilteringBoundLogger]:
    # structlog only ships filtering loggers for the stdlib levels.
    return structlog.make_filtering_bound_logger(min(level, logging.CRITICAL))


def build_processors(config: LoggerConfig) -> list[Any]:
    if level_number(config.level) >= SILENT:
        return [_drop_event]

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        TraceContextMixin(config.include_location),
        structlog.processors.StackInfoRenderer(),
    ]
    if config.is_production:
        processors += [
            structlog.processors.format_exc_info,
            SafeRenderer(structlog.processors.JSONRenderer()),
        ]
    else:
        # ConsoleRenderer pretty-prints exc_info itself.
        processors.append(SafeRenderer(structlog.dev.ConsoleRenderer()))
    return processors


def _static_fields(config: LoggerConfig) -> dict[str, Any]:
    return {
        "pid": os.getpid(),
        "hostname": socket.gethostname(),
        "service": config.service_name,
        "version": config.service_version,
    }


def create_logger(
    config: LoggerConfig | None = None,
    *,
    stream: TextIO | None = None,
) -> structlog.typing.FilteringBoundLogger:
    """Build a new trace-correlated logger writing to ``stream`` (stdout)."""

    config = config if config is not None else build_config()
    return structlog.wrap_logger(
        structlog.PrintLogger(file=stream if stream is not None else sys.stdout),
        processors=build_processors(config),
        wrapper_class=_wrapper_class(level_number(config.level)),
        context_class=dict,
        **_static_fields(config),
    )


def setup_logging(config: LoggerConfig | None = None) -> None:
    """Configure the global structlog pipeline and stdlib logging.

    Covers code that calls ``structlog.get_logger(__name__)`` directly, and
    routes uvicorn/library records to the same stream.
    """

    config = config if config is not None else build_config()
    level = level_number(config.level)

    structlog.configure(
        processors=build_processors(config),
        wrapper_class=_wrapper_class(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", level=level)


class LoggerFactory:
    """Lazily builds one logger and hands out the same instance until reset."""

    def __init__(
        self,
        config: LoggerConfig | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._config = config
        self._stream = stream
        self._logger: structlog.typing.FilteringBoundLogger | None = None
        self._lock = threading.Lock()

    def get_logger(self) -> structlog.typing.FilteringBoundLogger:
        logger = self._logger
        if logger is None:
            with self._lock:
                if self._logger is None:
                    self._logger = create_logger(self._config, stream=self._stream)
                logger = self._logger
        return logger

    def reset(self) -> None:
        """Drop the cached logger.

        Only call this when nothing is logging concurrently; it exists so tests
        can pick up configuration changes.
        """

        with self._lock:
            self._logger = None

    def rebuild(self) -> structlog.typing.FilteringBoundLogger:
        self.reset()
        return self.get_logger()


_factory = LoggerFactory()


def get_logger() -> structlog.typing.FilteringBoundLogger:
    """Return the process-wide trace-correlated logger."""

    return _factory.get_logger()


def reset_logger() -> None:
    _factory.reset()


def create_child_logger(
    fields: Mapping[str, Any],
    logger: structlog.typing.FilteringBoundLogger | None = None,
) -> structlog.typing.FilteringBoundLogger:
    """Bind ``fields`` onto every record of a new logger view.

    The parent is left untouched; trace and caller fields are still resolved
    per record.
    """

    parent = logger if logger is not None else get_logger()
    return parent.bind(**dict(fields))


def log_with_trace(
    level: str,
    message: str,
    data: Mapping[str, Any] | None = None,
    logger: structlog.typing.FilteringBoundLogger | None = None,
) -> None:
    """Log once with trace identifiers merged into ``data`` explicitly.

    For callbacks that run outside the request's context. Unknown levels are
    logged at ``info``.
    """

    log_data = dict(data or {})
    ctx = _trace_context()
    if ctx is not None:
        log_data["trace_id"] = ctx.trace_id
        log_data["span_id"] = ctx.span_id

    target = logger if logger is not None else get_logger()
    name = _TRACE_LOG_METHODS.get(level, "info") if isinstance(level, str) else "info"
    method = getattr(target, name)
    method(message, **log_data)
