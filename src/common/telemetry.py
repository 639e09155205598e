"""OpenTelemetry helpers."""

from __future__ import annotations

import asyncio
from typing import Any, NamedTuple

import structlog
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)

from .settings import Settings


class TraceContext(NamedTuple):
    """Identifiers of the span active at query time, in hex text form."""

    trace_id: str
    span_id: str


def get_active_trace_context() -> TraceContext | None:
    """Return the current span's identifiers, or ``None`` without a valid span.

    Never raises: a broken tracing API must not take logging down with it.
    """

    try:
        ctx = trace.get_current_span().get_span_context()
        if not ctx.is_valid:
            return None
        return TraceContext(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
        )
    except Exception:  # noqa: BLE001
        return None


def _build_exporters(settings: Settings, logger: Any) -> list[SpanExporter]:
    exporters: list[SpanExporter] = []
    if settings.console_exporter:
        exporters.append(ConsoleSpanExporter())
    if settings.otel_exporter_otlp_traces_endpoint:
        exporters.append(
            OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_traces_endpoint)
        )
    if not exporters:
        logger.warning("tracing_no_exporters", fallback="console")
        exporters.append(ConsoleSpanExporter())
    return exporters


def initialize_tracing(
    settings: Settings,
    logger: Any = None,
    app: FastAPI | None = None,
) -> TracerProvider | None:
    """Configure OpenTelemetry tracing for the service.

    Returns the installed provider, or ``None`` when tracing is disabled or
    the SDK failed to start. The provider is what :func:`shutdown_tracing`
    expects at process exit.
    """

    log = logger if logger is not None else structlog.get_logger(__name__)

    if not settings.otel_tracing_enabled:
        log.info("tracing_disabled", reason="OTEL_TRACING_ENABLED=false")
        return None

    try:
        resource = Resource.create(
            {
                SERVICE_NAME: settings.service_name,
                SERVICE_VERSION: settings.service_version,
                "deployment.environment": settings.environment,
            }
        )
        provider = TracerProvider(resource=resource)
        for exporter in _build_exporters(settings, log):
            provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        if app is not None:
            FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    except Exception as exc:  # noqa: BLE001
        log.error("tracing_init_failed", error=str(exc))
        return None

    log.info(
        "tracing_initialized",
        service=settings.service_name,
        version=settings.service_version,
    )
    return provider


async def shutdown_tracing(provider: Any, logger: Any = None) -> None:
    """Flush and close the tracer provider; failures are logged, not raised."""

    if provider is None:
        return

    log = logger if logger is not None else structlog.get_logger(__name__)
    try:
        # Flushing the batch processors blocks on exporter I/O.
        await asyncio.to_thread(provider.shutdown)
    except Exception as exc:  # noqa: BLE001
        log.warning("tracing_shutdown_failed", error=str(exc))
        return
    log.info("tracing_shutdown_completed")
