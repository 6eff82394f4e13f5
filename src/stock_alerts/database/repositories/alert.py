"""
Alert repository.
"""

from datetime import datetime, timezone
from typing import List, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from stock_alerts.core.models import Alert, AlertStatus, AlertType
from stock_alerts.database.models import Alert as AlertRow


def to_alert(row: AlertRow) -> Alert:
    return Alert(
        id=row.id,
        tenant_id=row.tenant_id,
        user_id=row.user_id,
        variant_id=row.bsale_variant_id,
        office_id=row.bsale_office_id,
        sku=row.sku,
        product_name=row.product_name,
        alert_type=AlertType(row.alert_type),
        current_quantity=row.current_quantity,
        threshold_quantity=row.threshold_quantity,
        days_to_stockout=row.days_to_stockout,
        status=AlertStatus(row.status),
        sent_at=row.sent_at,
        created_at=row.created_at,
    )


class SqlAlertRepository:
    """Pending alert reads and the sent transition."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_pending_by_tenant(self, tenant_id: str) -> List[Alert]:
        stmt = (
            select(AlertRow)
            .where(AlertRow.tenant_id == tenant_id, AlertRow.status == AlertStatus.PENDING.value)
            .order_by(AlertRow.created_at.desc(), AlertRow.id)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [to_alert(row) for row in rows]

    async def mark_as_sent(self, alert_ids: Sequence[str]) -> None:
        """
        Mark alerts as sent in one statement.

        Only pending rows change, so repeating the call keeps the first sent_at.
        """
        if not alert_ids:
            return

        stmt = (
            update(AlertRow)
            .where(AlertRow.id.in_(list(alert_ids)), AlertRow.status == AlertStatus.PENDING.value)
            .values(status=AlertStatus.SENT.value, sent_at=datetime.now(timezone.utc))
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
