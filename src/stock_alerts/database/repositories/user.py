"""
User repository.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from stock_alerts.core.models import DigestFrequency, User
from stock_alerts.database.models import User as UserRow


def to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        tenant_id=row.tenant_id,
        email=row.email,
        name=row.name,
        notification_email=row.notification_email,
        notification_enabled=row.notification_enabled,
        digest_frequency=DigestFrequency(row.digest_frequency),
        subscription_status=row.subscription_status,
        subscription_ends_at=row.subscription_ends_at,
    )


class SqlUserRepository:
    """Reads users and their digest preferences."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_with_digest_enabled(self, tenant_id: str, frequency: DigestFrequency) -> List[User]:
        """Users of a tenant subscribed to the given digest cadence with notifications on."""
        stmt = (
            select(UserRow)
            .where(
                UserRow.tenant_id == tenant_id,
                UserRow.digest_frequency == DigestFrequency(frequency).value,
                UserRow.notification_enabled.is_(True),
            )
            .order_by(UserRow.created_at, UserRow.id)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [to_user(row) for row in rows]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        async with self.session_factory() as session:
            row = await session.get(UserRow, user_id)
        return to_user(row) if row else None
