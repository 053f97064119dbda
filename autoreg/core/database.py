"""
Database configuration and session management
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool
from sqlalchemy import update
import logging

from autoreg.config import settings

logger = logging.getLogger(__name__)

# Create async engine
if settings.is_testing or settings.DATABASE_URL.startswith("sqlite"):
    # NullPool doesn't accept pool parameters
    engine: AsyncEngine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        poolclass=NullPool,
    )
else:
    engine: AsyncEngine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        poolclass=AsyncAdaptedQueuePool,
    )

# Create async session factory
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base
Base = declarative_base()


async def init_db():
    """
    Create tables (no migration tooling; create_all is idempotent)
    """
    try:
        # Import models so they are registered on Base.metadata
        import autoreg.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db():
    """
    Close database connections
    """
    await engine.dispose()
    logger.info("Database connections closed")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session with explicit transaction management
    Each endpoint must use explicit transaction boundaries
    """
    async with async_session() as session:
        try:
            yield session
            # No auto-commit - stores commit their own writes
        except Exception:
            await session.rollback()
            raise


class DatabaseManager:
    """
    Transaction helpers shared by the stores
    """

    def __init__(self):
        self.session_factory = async_session
        self.logger = logging.getLogger(__name__)

    async def commit(self, session: AsyncSession):
        """
        Commit the session, rolling back on failure so it stays usable
        """
        try:
            await session.commit()
        except Exception as e:
            await session.rollback()
            self.logger.error(f"Commit failed: {type(e).__name__}: {e}")
            raise

    async def conditional_update(
        self,
        session: AsyncSession,
        model,
        record_id: int,
        expected_status,
        **values
    ) -> bool:
        """
        Compare-and-swap style status transition.

        Runs ``UPDATE model SET values WHERE id = record_id AND status = expected_status``
        and commits. Returns False when no row matched, i.e. the record is missing
        or another invocation already moved it out of ``expected_status``.
        """
        stmt = (
            update(model)
            .where(model.id == record_id, model.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await session.execute(stmt)
        except Exception:
            await session.rollback()
            raise
        await self.commit(session)

        matched = result.rowcount > 0
        if not matched:
            self.logger.debug(
                f"Conditional update skipped: {model.__tablename__}#{record_id} "
                f"not in status {expected_status}"
            )
        return matched


# Create global database manager
db_manager = DatabaseManager()
