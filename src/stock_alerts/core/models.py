"""
Data models for Stock Alerts.

In-memory snapshots the digest pipeline works with. Rows are loaded by the
repositories in ``stock_alerts.database`` and converted into these
dataclasses, so the pipeline never holds database state across runs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class DigestFrequency(str, Enum):
    """How often a user wants to receive the alert digest."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"

    @classmethod
    def schedulable(cls) -> List["DigestFrequency"]:
        return [cls.DAILY, cls.WEEKLY]


class AlertType(str, Enum):
    """Reason an alert was raised."""
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    LOW_VELOCITY = "low_velocity"


class AlertStatus(str, Enum):
    """Alert lifecycle state."""
    PENDING = "pending"
    SENT = "sent"
    DISMISSED = "dismissed"


class SyncStatus(str, Enum):
    """Tenant synchronization state."""
    PENDING = "pending"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Tenant:
    """Customer account connected to the commerce platform."""
    id: str
    client_code: str
    client_name: Optional[str] = None
    access_token: Optional[str] = None
    sync_status: SyncStatus = SyncStatus.PENDING
    last_sync_at: Optional[datetime] = None
    subscription_status: str = "none"
    is_paid: bool = False

    @property
    def display_name(self) -> str:
        return self.client_name or "Tu empresa"


@dataclass(frozen=True)
class User:
    """Member of a tenant who may receive digests."""
    id: str
    tenant_id: str
    email: str
    name: Optional[str] = None
    notification_email: Optional[str] = None
    notification_enabled: bool = True
    digest_frequency: DigestFrequency = DigestFrequency.DAILY
    subscription_status: str = "none"
    subscription_ends_at: Optional[datetime] = None

    @property
    def recipient(self) -> str:
        """Address digests go to: the override when set, otherwise the login e-mail."""
        if self.notification_email and self.notification_email.strip():
            return self.notification_email.strip()
        return self.email


@dataclass(frozen=True)
class Alert:
    """Stock alert for one product variant."""
    id: str
    tenant_id: str
    user_id: str
    variant_id: int
    alert_type: AlertType
    current_quantity: int
    office_id: Optional[int] = None
    sku: Optional[str] = None
    product_name: Optional[str] = None
    threshold_quantity: Optional[int] = None
    days_to_stockout: Optional[int] = None
    status: AlertStatus = AlertStatus.PENDING
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Threshold:
    """Stock threshold configured by a user."""
    id: str
    tenant_id: str
    user_id: str
    min_quantity: int
    variant_id: Optional[int] = None
    office_id: Optional[int] = None
    days_warning: int = 0
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class DigestFailure:
    """Structured record of one error collected during a digest run."""
    kind: str  # tenant_fetch, gate, send, mark_sent, tenant
    tenant_id: str
    message: str
    user_id: Optional[str] = None
    recipient: Optional[str] = None


@dataclass(frozen=True)
class DigestJobResult:
    """Outcome of one digest run."""
    frequency: DigestFrequency
    tenants_processed: int
    emails_sent: int
    emails_failed: int
    alerts_marked_sent: int
    started_at: datetime
    completed_at: datetime
    errors: Tuple[str, ...] = ()
    failures: Tuple[DigestFailure, ...] = ()

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def to_dict(self) -> dict:
        return {
            "frequency": self.frequency.value,
            "tenants_processed": self.tenants_processed,
            "emails_sent": self.emails_sent,
            "emails_failed": self.emails_failed,
            "alerts_marked_sent": self.alerts_marked_sent,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "errors": list(self.errors),
        }


@dataclass
class DigestRunState:
    """Mutable accumulator owned by a single digest run."""
    frequency: DigestFrequency
    started_at: datetime
    tenants_processed: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    alerts_marked_sent: int = 0
    errors: List[str] = field(default_factory=list)
    failures: List[DigestFailure] = field(default_factory=list)

    def record_failure(self, failure: DigestFailure, text: str) -> None:
        self.failures.append(failure)
        self.errors.append(text)

    def freeze(self, completed_at: datetime) -> DigestJobResult:
        return DigestJobResult(
            frequency=self.frequency,
            tenants_processed=self.tenants_processed,
            emails_sent=self.emails_sent,
            emails_failed=self.emails_failed,
            alerts_marked_sent=self.alerts_marked_sent,
            started_at=self.started_at,
            completed_at=completed_at,
            errors=tuple(self.errors),
            failures=tuple(self.failures),
        )


@dataclass(frozen=True)
class SessionCleanupResult:
    """Outcome of one expired-session sweep."""
    deleted_count: int
    started_at: datetime
    completed_at: datetime
