"""
Session repository.
"""

from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from stock_alerts.database.models import Session as SessionRow


class SqlSessionRepository:
    """Session housekeeping for the cleanup job."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def delete_expired(self) -> int:
        """Delete sessions whose expiry has passed and return how many were removed."""
        stmt = delete(SessionRow).where(SessionRow.expires_at <= datetime.now(timezone.utc))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount or 0
