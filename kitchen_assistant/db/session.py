"""
Database Session Management

Builds async SQLAlchemy engines and session factories for the SQL
conversation store. Nothing is created at import time: the store is only
used when DATABASE_URL is configured.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from kitchen_assistant.config import settings
from kitchen_assistant.db.models import Base


def create_engine_for(database_url: str) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    Pool sizing only applies to server databases; SQLite uses the driver's
    default pool.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=settings.DEBUG)
    return create_async_engine(
        database_url,
        echo=settings.DEBUG,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """
    Yield a session that commits on success and rolls back on error.

    Usage:
        async with session_scope(factory) as session:
            ...
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
