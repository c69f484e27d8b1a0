"""Structured logging for the marketplace.

Events are logged through structlog on top of the standard library root
logger. Production and staging render JSON lines; elsewhere a console
renderer is used. Webhook handling binds ``event_id``/``event_type`` with
``add_context`` so every line logged while an event is processed carries it.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

from marketplace.config import Settings, get_settings

_LEVEL_BY_ENVIRONMENT = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# Chatty third-party loggers; the Stripe SDK logs every request at INFO
_QUIET_LOGGERS = ("urllib3", "asyncio", "stripe")


def log_level(settings: Settings) -> str:
    return (settings.log_level or _LEVEL_BY_ENVIRONMENT.get(settings.environment, "INFO")).upper()


def _root_handlers(settings: Settings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_dir:
        path = Path(settings.log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=path / "marketplace.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )
    return handlers


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    level = log_level(settings)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _root_handlers(settings)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if settings.environment in ("production", "staging"):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind values onto every log line until ``clear_context``."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
