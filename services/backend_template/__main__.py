"""Run the service with uvicorn: ``python -m services.backend_template``."""

import uvicorn

from src.common.logging import build_config, get_logger, setup_logging

from .app.deps import get_settings
from .app.main import app


def main() -> None:
    settings = get_settings()
    setup_logging(build_config(settings))
    get_logger().info(
        "server_starting", port=settings.port, environment=settings.environment
    )
    # uvicorn turns SIGINT/SIGTERM into the app's shutdown event.
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
