"""
Database configuration and session management.

Provides:
- Database handle owning an async engine and session factory
- Async session context manager with commit/rollback
- Table creation utilities

The handle is constructed explicitly at application startup and disposed at
teardown; nothing here creates an engine at import time.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from family_calendar.config import Settings

logger = logging.getLogger(__name__)


def get_async_database_url(sync_url: str) -> str:
    """Convert sync database URL to async URL."""
    if sync_url.startswith("sqlite:///"):
        # SQLite async uses aiosqlite
        return sync_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if sync_url.startswith("postgresql://"):
        # PostgreSQL async uses asyncpg
        return sync_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return sync_url


class Database:
    """
    Async database handle.

    Usage:
        db = Database("sqlite:///./data/family_calendar.db")
        await db.create_all()
        async with db.session() as session:
            ...
        await db.dispose()
    """

    def __init__(self, url: str, echo: bool = False):
        async_url = get_async_database_url(url)

        if "sqlite" in async_url:
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in async_url:
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
            self.engine: AsyncEngine = create_async_engine(async_url, echo=echo, **kwargs)
        else:
            self.engine = create_async_engine(
                async_url,
                pool_size=5,
                pool_recycle=3600,
                pool_pre_ping=True,
                echo=echo,
            )

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build a handle from application settings."""
        return cls(settings.database_url, echo=settings.log_level == "DEBUG")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Async context manager for database sessions.

        Commits on clean exit, rolls back on exception.

        Yields:
            AsyncSession: SQLAlchemy async database session
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """
        Create all tables.

        Useful for development and testing. In production, use Alembic migrations.
        """
        from family_calendar.models.base import Base

        logger.info("Creating database tables...")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def drop_all(self) -> None:
        """
        Drop all tables.

        WARNING: This will delete all data.
        """
        from family_calendar.models.base import Base

        logger.warning("Dropping all database tables...")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


def create_database(settings: Optional[Settings] = None, url: Optional[str] = None) -> Database:
    """Create a Database from an explicit URL or from settings."""
    if url is not None:
        return Database(url)
    if settings is None:
        raise ValueError("Either settings or url must be provided")
    return Database.from_settings(settings)
