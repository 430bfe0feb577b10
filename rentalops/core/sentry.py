"""Optional Sentry error reporting."""

import os
from typing import Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from rentalops import __version__
from rentalops.config import Settings
from rentalops.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

# Domain errors answered with a 4xx; never reported
_CALLER_ERRORS = (ValidationError, NotFoundError, ConflictError)


def _is_client_status(code: Optional[int]) -> bool:
    return code is not None and 400 <= code < 500


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """Drop events caused by the caller rather than by the service."""
    exc_info = hint.get("exc_info")
    if exc_info:
        exc = exc_info[1]
        if isinstance(exc, _CALLER_ERRORS):
            return None
        if _is_client_status(getattr(exc, "status_code", None)):
            return None

    response = event.get("contexts", {}).get("response", {})
    if _is_client_status(response.get("status_code")):
        return None
    return event


def init_sentry(settings: Settings) -> bool:
    """Initialise Sentry when a DSN is configured. Returns whether it was."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=os.environ.get("GIT_SHA") or f"rentalops@{__version__}",
        integrations=[
            # Breadcrumbs off; ERROR logs become events
            LoggingIntegration(level=None, event_level="ERROR"),
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", "rentalops")
    sentry_sdk.set_tag("config_profile", settings.config_profile)

    logger.info(
        "sentry_initialized",
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )
    return True
