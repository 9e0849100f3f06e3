"""structlog configuration."""

import logging

import structlog
from structlog.types import EventDict, WrappedLogger

from habit_tracker.config import Settings

_SENSITIVE_KEYS = frozenset(
    {"password", "password_hash", "token", "access_token", "refresh_token", "authorization", "token_hash"}
)


def redact_credentials(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Mask credential fields so they never reach the log sink."""
    for key in event_dict.keys() & _SENSITIVE_KEYS:
        event_dict[key] = "[redacted]"
    return event_dict


def setup_logging(settings: Settings) -> None:
    """JSON lines in deployed environments, coloured console output locally."""

    def add_service(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", "habit-tracker-api")
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service,
            redact_credentials,
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO), format="%(message)s")
    # Our middleware logs requests itself
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
