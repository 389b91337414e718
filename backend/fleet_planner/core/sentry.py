"""
Sentry integration for error tracking and performance monitoring.

Sentry is only initialised when SENTRY_DSN is configured; the helpers
below are safe to call either way because sentry_sdk is a no-op until
``sentry_sdk.init`` runs.
"""

import logging
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from fleet_planner.core.config import settings

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """
    Initialize Sentry SDK.

    Call this once during application startup.

    Returns:
        True if Sentry was initialized, False otherwise.
    """
    if not settings.SENTRY_DSN:
        logger.info("SENTRY_DSN not configured, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
        traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        send_default_pii=False,
        before_send=_before_send,
        before_send_transaction=_before_send_transaction,
        max_breadcrumbs=50,
        attach_stacktrace=True,
        include_local_variables=settings.ENVIRONMENT != "production",
    )

    logger.info(f"Sentry initialized for {settings.ENVIRONMENT} environment")
    return True


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """
    Drop client errors before they reach Sentry.

    Domain exceptions carry a 4xx status code; only 5xx are reported.
    """
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        status_code = getattr(exc_value, "status_code", None)
        if status_code and 400 <= status_code < 500:
            return None

    return event


def _before_send_transaction(event: dict, hint: dict) -> Optional[dict]:
    """Skip health check and metrics transactions."""
    transaction_name = event.get("transaction", "")
    if any(path in transaction_name for path in ["/health", "/metrics", "/docs"]):
        return None

    return event


def set_user_context(user_id: str, role: Optional[str] = None) -> None:
    """Attach the authenticated user to subsequent error events."""
    user_data: dict[str, Any] = {"id": user_id}
    if role:
        user_data["role"] = role
    sentry_sdk.set_user(user_data)


def add_breadcrumb(
    message: str,
    category: str = "custom",
    level: str = "info",
    data: Optional[dict] = None,
):
    """
    Add a breadcrumb to the current scope.

    Breadcrumbs are events leading up to an error.
    """
    sentry_sdk.add_breadcrumb(
        category=category,
        message=message,
        level=level,
        data=data,
    )
