"""
Database connection and session management.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from stock_alerts.database.models import Base
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine with pool settings matching the backend.

    PostgreSQL gets a connection pool; SQLite runs without one.
    """
    engine_kwargs = {"echo": echo}

    if database_url.startswith("postgresql"):
        engine_kwargs.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
        })
    else:
        engine_kwargs["poolclass"] = NullPool

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory shared by all repositories."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class Database:
    """Owns the engine and session factory for one process."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_engine_for_url(database_url, echo=echo)
        self.session_factory = create_session_factory(self.engine)
        backend = "PostgreSQL" if database_url.startswith("postgresql") else "SQLite"
        logger.info(f"Database engine created ({backend})")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional session scope.

        Usage:
            async with db.session() as session:
                tenant = await session.get(Tenant, tenant_id)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self) -> None:
        """Create all tables."""
        logger.info("Creating database tables...")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self.engine.dispose()
        logger.info("Database connection closed")


_database: Optional[Database] = None


def get_database(database_url: str, echo: bool = False) -> Database:
    """Process-wide database for the given URL."""
    global _database

    if _database is None or _database.database_url != database_url:
        _database = Database(database_url, echo=echo)

    return _database


async def close_db() -> None:
    """Close the process-wide database, if one was opened."""
    global _database

    if _database is not None:
        await _database.close()
        _database = None
