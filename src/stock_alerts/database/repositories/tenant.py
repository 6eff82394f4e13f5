"""
Tenant repository.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from stock_alerts.core.models import SyncStatus, Tenant
from stock_alerts.database.models import Tenant as TenantRow


def to_tenant(row: TenantRow) -> Tenant:
    return Tenant(
        id=row.id,
        client_code=row.bsale_client_code,
        client_name=row.bsale_client_name,
        access_token=row.bsale_access_token,
        sync_status=SyncStatus(row.sync_status),
        last_sync_at=row.last_sync_at,
        subscription_status=row.subscription_status,
        is_paid=row.is_paid,
    )


class SqlTenantRepository:
    """Reads tenants for scheduled jobs."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_active_tenants(self) -> List[Tenant]:
        """
        Tenants that are not in the middle of a sync.

        Least recently synced first, never-synced tenants before all others.
        """
        stmt = (
            select(TenantRow)
            .where(TenantRow.sync_status != SyncStatus.SYNCING.value)
            .order_by(TenantRow.last_sync_at.asc().nulls_first(), TenantRow.id)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [to_tenant(row) for row in rows]
