"""
Storefront Gateway entry point: ``python -m gateway``
"""
import sys

import structlog
import uvicorn

from gateway.config.loader import load_settings
from gateway.errors import ConfigurationError
from gateway.logging_config import setup_logging

logger = structlog.get_logger()


def main() -> int:
    """Validate configuration, then serve. No port is bound if configuration is invalid."""
    try:
        settings = load_settings()
        setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    except ConfigurationError as exc:
        logger.error("gateway_startup_aborted", reason=exc.message)
        return 1

    uvicorn.run(
        "gateway.main:app",
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
