"""
Threshold repository.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from stock_alerts.core.models import Threshold
from stock_alerts.database.models import Threshold as ThresholdRow


def to_threshold(row: ThresholdRow) -> Threshold:
    return Threshold(
        id=row.id,
        tenant_id=row.tenant_id,
        user_id=row.user_id,
        variant_id=row.bsale_variant_id,
        office_id=row.bsale_office_id,
        min_quantity=row.min_quantity,
        days_warning=row.days_warning,
        created_at=row.created_at,
    )


class SqlThresholdRepository:
    """Threshold queries used by the plan-limit service."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    def _by_age(self, user_id: str):
        # Oldest thresholds keep working when a plan is over its limit
        return (
            select(ThresholdRow)
            .where(ThresholdRow.user_id == user_id)
            .order_by(ThresholdRow.created_at.asc(), ThresholdRow.id.asc())
        )

    async def count_by_user_across_tenants(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(ThresholdRow).where(ThresholdRow.user_id == user_id)
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def get_active_thresholds_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Threshold]:
        stmt = self._by_age(user_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [to_threshold(row) for row in rows]

    async def get_skipped_thresholds_for_user(self, user_id: str, limit: int) -> List[Threshold]:
        """Thresholds beyond the first ``limit`` ones."""
        stmt = self._by_age(user_id).offset(limit)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [to_threshold(row) for row in rows]
