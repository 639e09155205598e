"""Common utilities for backend-template services."""

from .logging import create_child_logger, get_logger, log_with_trace, setup_logging
from .metrics import setup_metrics
from .settings import Settings, get_settings
from .telemetry import get_active_trace_context, initialize_tracing, shutdown_tracing

__all__ = [
    "Settings",
    "get_settings",
    "initialize_tracing",
    "shutdown_tracing",
    "get_active_trace_context",
    "setup_logging",
    "get_logger",
    "create_child_logger",
    "log_with_trace",
    "setup_metrics",
]
