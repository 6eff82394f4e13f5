"""
Test configuration and fixtures for Stock Alerts
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from stock_alerts.core.interfaces import SendEmailResult
from stock_alerts.core.models import (
    Alert,
    AlertType,
    DigestFrequency,
    SyncStatus,
    Tenant,
    User,
)
from stock_alerts.workers.digest import DigestDependencies


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_tenant():
    """Build a Tenant snapshot"""
    def _make(tenant_id: str = "tenant-1", name: Optional[str] = "Ferreteria Central", **kwargs) -> Tenant:
        defaults = {
            "client_code": f"code-{tenant_id}",
            "sync_status": SyncStatus.SUCCESS,
        }
        defaults.update(kwargs)
        return Tenant(id=tenant_id, client_name=name, **defaults)
    return _make


@pytest.fixture
def make_user():
    """Build a User snapshot"""
    def _make(user_id: str = "user-1", tenant_id: str = "tenant-1", **kwargs) -> User:
        defaults = {
            "email": f"{user_id}@example.com",
            "name": user_id.title(),
            "digest_frequency": DigestFrequency.DAILY,
        }
        defaults.update(kwargs)
        return User(id=user_id, tenant_id=tenant_id, **defaults)
    return _make


@pytest.fixture
def make_alert():
    """Build a pending Alert snapshot"""
    counter = {"n": 0}

    def _make(user_id: str = "user-1", tenant_id: str = "tenant-1", **kwargs) -> Alert:
        counter["n"] += 1
        defaults = {
            "id": f"alert-{counter['n']}",
            "variant_id": 1000 + counter["n"],
            "alert_type": AlertType.LOW_STOCK,
            "current_quantity": 3,
            "sku": f"SKU-{counter['n']}",
            "product_name": f"Producto {counter['n']}",
            "threshold_quantity": 10,
        }
        defaults.update(kwargs)
        return Alert(tenant_id=tenant_id, user_id=user_id, **defaults)
    return _make


# =============================================================================
# In-memory repositories
# =============================================================================

class FakeTenantRepository:
    def __init__(self, tenants: Sequence[Tenant] = (), error: Optional[Exception] = None):
        self.tenants = list(tenants)
        self.error = error

    async def get_active_tenants(self) -> List[Tenant]:
        if self.error:
            raise self.error
        return list(self.tenants)


class FakeUserRepository:
    def __init__(self, users: Sequence[User] = (), errors: Optional[Dict[str, Exception]] = None):
        self.users = list(users)
        self.errors = errors or {}
        self.calls = []

    async def get_with_digest_enabled(self, tenant_id: str, frequency: DigestFrequency) -> List[User]:
        self.calls.append((tenant_id, frequency))
        if tenant_id in self.errors:
            raise self.errors[tenant_id]
        return [
            u for u in self.users
            if u.tenant_id == tenant_id and u.digest_frequency == frequency and u.notification_enabled
        ]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)


class FakeAlertRepository:
    def __init__(self, alerts: Sequence[Alert] = (), mark_error: Optional[Exception] = None):
        self.alerts = list(alerts)
        self.mark_error = mark_error
        self.marked_batches: List[List[str]] = []

    async def get_pending_by_tenant(self, tenant_id: str) -> List[Alert]:
        return [a for a in self.alerts if a.tenant_id == tenant_id]

    async def mark_as_sent(self, alert_ids: Sequence[str]) -> None:
        if self.mark_error:
            raise self.mark_error
        self.marked_batches.append(list(alert_ids))

    @property
    def marked_ids(self) -> List[str]:
        return [alert_id for batch in self.marked_batches for alert_id in batch]


class FakeSkippedCounter:
    def __init__(self, counts: Optional[Dict[str, int]] = None, error: Optional[Exception] = None):
        self.counts = counts or {}
        self.error = error

    async def get_skipped_count(self, user_id: str) -> int:
        if self.error:
            raise self.error
        return self.counts.get(user_id, 0)


@pytest.fixture
def email_client():
    """E-mail client double that accepts every message"""
    client = AsyncMock()
    client.send_email.return_value = SendEmailResult(success=True, id="msg-1")
    return client


@pytest.fixture
def build_deps(email_client):
    """Assemble DigestDependencies from in-memory doubles"""
    def _build(tenants=(), users=(), alerts=(), *, tenant_error=None, user_errors=None,
               mark_error=None, skipped_counts=None, gate_error=None, config=None) -> DigestDependencies:
        return DigestDependencies(
            tenant_repo=FakeTenantRepository(tenants, tenant_error),
            user_repo=FakeUserRepository(users, user_errors),
            alert_repo=FakeAlertRepository(alerts, mark_error),
            email_client=email_client,
            threshold_limit_service=FakeSkippedCounter(skipped_counts, gate_error),
            config=config,
        )
    return _build


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def database(tmp_path):
    """SQLite database with all tables created"""
    from stock_alerts.database.connection import Database

    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
def utc_now() -> datetime:
    return datetime.now(timezone.utc)
