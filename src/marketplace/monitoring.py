"""Error tracking through Sentry.

Reporting is a no-op until ``init_error_tracking`` has been called with a
configured DSN, so tests and local runs never talk to Sentry.
"""

from typing import Any

import sentry_sdk
import structlog

from marketplace.config import Settings

logger = structlog.get_logger(__name__)

_enabled = False


def init_error_tracking(settings: Settings) -> bool:
    """Initialise the Sentry client. Returns True if reporting is enabled."""
    global _enabled
    if not settings.sentry_dsn:
        logger.info("sentry_disabled", reason="no_dsn")
        _enabled = False
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.0,
        send_default_pii=False,
    )
    _enabled = True
    logger.info("sentry_enabled", environment=settings.environment)
    return True


def capture_exception(exception: BaseException, context: dict[str, Any] | None = None) -> None:
    """Report an exception with optional extra context."""
    if not _enabled:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in (context or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
