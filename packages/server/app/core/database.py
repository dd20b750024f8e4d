"""
Database connection and session management.

Timestamps are written as naive UTC (see ``app.models.base``), so the
same comparisons run on PostgreSQL in production and in-memory SQLite in
tests.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()


def engine_options(database_url: str, debug: bool = False) -> dict:
    """Engine keyword arguments for a database URL.

    SQLite runs on a single connection without pool sizing; server
    databases get pre-ping so dropped connections are replaced.
    """
    options: dict = {"echo": debug, "future": True}
    if database_url.startswith("sqlite"):
        return options
    options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return options


engine = create_async_engine(
    settings.database_url,
    **engine_options(settings.database_url, settings.debug),
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create all tables (development only)."""
    import app.models  # noqa: F401  populate metadata

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    log.info("db.tables_created", tables=sorted(SQLModel.metadata.tables))


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context():
    """Context manager for use outside of FastAPI request lifecycle."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
