"""structlog setup for the gateway.

Every record carries ``service`` and, while a request is in flight, the
``request_id`` bound by :class:`~gateway.middleware.access_logger.AccessLogger`.
Values under credential-like keys are masked before rendering.
"""

import logging
import sys

import structlog

from gateway.errors import ConfigurationError

SERVICE_NAME = "storefront-gateway"

REDACTED_KEYS = frozenset({"authorization", "cookie", "password", "token", "redis_url"})

# Third-party loggers that would duplicate AccessLogger or spam reconnects
_QUIET_LOGGERS = ("uvicorn.access", "redis")


def _tag_service(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    if "logger" in event_dict:
        event_dict["module"] = event_dict.pop("logger")
    return event_dict


def _redact_secrets(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Mask credential-like fields so they never reach the log sink."""
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = "***"
    return event_dict


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {log_level!r}")
    return level


def setup_logging(log_level: str = "info", json_format: bool = True) -> None:
    """Route structlog and stdlib logging through one stdout handler."""
    level = _resolve_level(log_level)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _tag_service,
        _redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
