"""
Capabilities the digest pipeline and the scheduled jobs depend on.

The SQLAlchemy repositories and the Resend client implement these; tests
substitute in-memory doubles.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from stock_alerts.core.models import Alert, DigestFrequency, Tenant, Threshold, User


class TenantRepository(Protocol):
    async def get_active_tenants(self) -> List[Tenant]: ...


class UserRepository(Protocol):
    async def get_with_digest_enabled(self, tenant_id: str, frequency: DigestFrequency) -> List[User]: ...

    async def get_by_id(self, user_id: str) -> Optional[User]: ...


class AlertRepository(Protocol):
    async def get_pending_by_tenant(self, tenant_id: str) -> List[Alert]: ...

    async def mark_as_sent(self, alert_ids: Sequence[str]) -> None: ...


class ThresholdRepository(Protocol):
    async def count_by_user_across_tenants(self, user_id: str) -> int: ...

    async def get_active_thresholds_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Threshold]: ...

    async def get_skipped_thresholds_for_user(self, user_id: str, limit: int) -> List[Threshold]: ...


class SessionRepository(Protocol):
    async def delete_expired(self) -> int: ...


class SkippedThresholdCounter(Protocol):
    async def get_skipped_count(self, user_id: str) -> int: ...


@dataclass(frozen=True)
class SendEmailResult:
    """Provider answer for one message."""
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None


class EmailClient(Protocol):
    async def send_email(self, to: str, subject: str, html: str) -> SendEmailResult: ...
