"""
Sentry integration for error tracking.

Errors logged by the scheduled jobs (``logger.error``) become Sentry events
through the logging integration; lower levels are kept as breadcrumbs.
"""

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from stock_alerts import __version__
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)


def setup_sentry(
    dsn: Optional[str] = None,
    environment: str = "development",
    release: Optional[str] = None,
    traces_sample_rate: float = 0.0,
) -> bool:
    """
    Initialize the Sentry SDK.

    Args:
        dsn: Sentry DSN; Sentry stays disabled without one
        environment: Deployment environment (production, staging, development)
        release: Release name, defaults to "stock-alerts@<version>"
        traces_sample_rate: Fraction of transactions to trace (0.0-1.0)

    Returns:
        True when Sentry was initialized.
    """
    if not dsn:
        logger.info("Sentry DSN not configured, skipping Sentry initialization")
        return False

    release = release or f"stock-alerts@{__version__}"

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        integrations=[
            SqlalchemyIntegration(),
            AsyncioIntegration(),
            LoggingIntegration(
                level=logging.INFO,  # breadcrumbs
                event_level=logging.ERROR,
            ),
        ],
        traces_sample_rate=traces_sample_rate,
        before_send=before_send_filter,
        attach_stacktrace=True,
        send_default_pii=False,
        max_breadcrumbs=50,
    )

    logger.info(f"Sentry initialized: environment={environment}, release={release}")
    return True


def before_send_filter(event, hint):
    """Drop provider rate-limit noise; those failures are already counted in metrics."""
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        if "429" in str(exc_value) or "rate limit" in str(exc_value).lower():
            return None

    return event


def set_tenant_context(tenant_id: str, tenant_name: Optional[str] = None) -> None:
    """Attach the tenant being processed to subsequent Sentry events."""
    sentry_sdk.set_context("tenant", {
        "tenant_id": tenant_id,
        "tenant_name": tenant_name,
    })
