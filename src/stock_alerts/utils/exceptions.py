"""
Custom exceptions for Stock Alerts.

Defines application-specific exception classes for configuration, scheduling,
billing lookups, e-mail delivery and the per-tenant digest pipeline.
"""

from typing import Optional, Dict, Any


class StockAlertsError(Exception):
    """Base exception for all Stock Alerts errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(StockAlertsError):
    """Raised when configuration is invalid or missing."""
    pass


class SchedulingError(StockAlertsError):
    """Raised when a scheduler cannot be started or configured."""
    pass


class UserNotFoundError(StockAlertsError):
    """Raised when a user referenced by id does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class EmailDeliveryError(StockAlertsError):
    """Raised by the e-mail transport when the provider rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        details = {}
        if status_code:
            details["status_code"] = status_code

        super().__init__(message, details)
        self.status_code = status_code


class DigestError(StockAlertsError):
    """
    Base class for failures inside one tenant's digest processing.

    ``kind`` tags the failure for programmatic handling. The plain message
    (without details) is what ends up in the job's error list.
    """

    kind = "tenant"

    def __init__(self, message: str, tenant_id: str, user_id: Optional[str] = None):
        details = {"tenant_id": tenant_id}
        if user_id:
            details["user_id"] = user_id

        super().__init__(message, details)
        self.tenant_id = tenant_id
        self.user_id = user_id


class TenantFetchError(DigestError):
    """Loading users or pending alerts for a tenant failed."""

    kind = "tenant_fetch"


class ThresholdGateError(DigestError):
    """The plan-limit lookup for a user failed."""

    kind = "gate"


class SendError(DigestError):
    """The e-mail transport raised instead of returning a result."""

    kind = "send"

    def __init__(self, message: str, tenant_id: str, user_id: Optional[str] = None,
                 recipient: Optional[str] = None):
        super().__init__(message, tenant_id, user_id)
        self.recipient = recipient
        if recipient:
            self.details["recipient"] = recipient


class MarkSentError(DigestError):
    """The digest was delivered but its alerts could not be marked as sent."""

    kind = "mark_sent"

    def __init__(self, message: str, tenant_id: str, user_id: Optional[str] = None,
                 alert_ids: Optional[list] = None):
        super().__init__(message, tenant_id, user_id)
        self.alert_ids = alert_ids or []
        if alert_ids:
            self.details["alert_count"] = len(alert_ids)


def error_message(error: BaseException) -> str:
    """Human-readable message for an exception, "Unknown error" when it has none."""
    if isinstance(error, StockAlertsError):
        return error.message or "Unknown error"
    return str(error) or "Unknown error"
