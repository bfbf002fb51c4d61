"""
Error Tracking (Sentry)

init_sentry() is called once by the API process and once by each worker.
Without SENTRY_DSN it does nothing and capture_exception() only logs.
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

from app.core.config import settings

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """Initialise the Sentry SDK if a DSN is configured."""
    if not settings.SENTRY_DSN:
        logger.info("SENTRY_DSN not set, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
    )
    logger.info(f"Sentry initialized (environment: {settings.ENVIRONMENT})")
    return True


def capture_exception(
    exc: BaseException,
    tags: Optional[Dict[str, str]] = None,
    context: Optional[Dict[str, Dict[str, Any]]] = None,
) -> None:
    """
    Report an exception with tags and named contexts.

    Example:
        capture_exception(
            e,
            tags={"component": "chat", "operation": "persist_messages"},
            context={"chat": {"chat_id": str(session_id)}},
        )
    """
    logger.error(f"Captured exception: {exc!r} tags={tags}")

    with sentry_sdk.new_scope() as scope:
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        for name, values in (context or {}).items():
            scope.set_context(name, values)
        sentry_sdk.capture_exception(exc)
