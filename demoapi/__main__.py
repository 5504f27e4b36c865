"""
Command-line entry point: ``python -m demoapi`` or ``demo-web-service``.

Everything up to the server accepting connections runs under a top-level
guard: a failure there is logged and the process exits with status 1.
"""

import asyncio
import logging
import sys

from demoapi.config import get_settings
from demoapi.lifecycle import LifecycleCoordinator
from demoapi.main import configure_logging, create_app

logger = logging.getLogger("demoapi")


def main() -> int:
    try:
        settings = get_settings()
        configure_logging(settings)
        logger.info(
            "Configuration loaded | serverPort=%d | read_timeout=%.1fs | write_timeout=%.1fs"
            " | idle_timeout=%.1fs | shutdown_timeout=%.1fs | allowed_origins=%s | test_mode=%s",
            settings.server_port,
            settings.read_timeout,
            settings.write_timeout,
            settings.idle_timeout,
            settings.shutdown_timeout,
            ",".join(settings.allowed_origins),
            settings.test_mode,
        )
        app = create_app(settings)
        logger.info("Routes configured")
        coordinator = LifecycleCoordinator(app, settings)
        asyncio.run(coordinator.serve())
    except Exception:
        logger.critical("Fatal error, exiting", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
