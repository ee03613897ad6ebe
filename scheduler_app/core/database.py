from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import DateTime, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

logger = structlog.get_logger(__name__)

# SQLAlchemy Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime column normalised to UTC.

    Naive values are taken to be UTC already. Values read back are always
    aware, including on backends that drop the offset (SQLite).
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class DatabaseClient:
    """Owns the async engine and session factory for one process.

    Constructed at application startup, closed at shutdown.
    """

    def __init__(self, database_url: str, **engine_kwargs):
        self.database_url = database_url
        engine_kwargs.setdefault("echo", False)
        if not database_url.startswith("sqlite"):
            engine_kwargs.setdefault("pool_pre_ping", True)
            engine_kwargs.setdefault("pool_recycle", 300)
        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self, create_tables: bool = False) -> None:
        """Verify connectivity and optionally create missing tables."""
        # Register models on Base.metadata
        from scheduler_app import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if create_tables:
                    await conn.run_sync(Base.metadata.create_all)

            logger.info(
                "Database connection initialized successfully",
                create_tables=create_tables,
            )
        except Exception as e:
            logger.error("Failed to initialize database", exc_info=e)
            raise

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")

    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, rolling back on error."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                logger.error("Database session error", exc_info=e)
                raise
