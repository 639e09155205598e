import io
import json
import os
from typing import Callable

import pytest

# Importing the service module builds an app; keep it from installing a
# global tracer provider or reading a developer's environment.
os.environ.setdefault("OTEL_TRACING_ENABLED", "false")
os.environ.setdefault("NODE_ENV", "test")

from src.common import logging as app_logging  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_logger() -> None:
    app_logging.reset_logger()
    yield
    app_logging.reset_logger()


@pytest.fixture()
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def records(log_stream: io.StringIO) -> Callable[[], list[dict]]:
    """Parse the JSON lines written to ``log_stream`` so far."""

    def read() -> list[dict]:
        return [json.loads(line) for line in log_stream.getvalue().splitlines() if line]

    return read


@pytest.fixture()
def json_logger(log_stream: io.StringIO):
    config = app_logging.LoggerConfig(
        is_production=True,
        service_name="test-service",
        service_version="0.0.1",
    )
    return app_logging.create_logger(config, stream=log_stream)
