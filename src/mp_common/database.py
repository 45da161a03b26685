"""Async engine, session factory and the per-request session dependency.

Sessions are handed to application services, which own the transaction:
they commit on success and roll back on any error before re-raising.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the marketplace ORM mirrors (schema lives in Alembic)."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def ping_database(target: AsyncEngine = engine) -> None:
    """Fail fast at startup when PostgreSQL is unreachable."""
    async with target.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one AsyncSession per request, closed afterwards."""
    async with async_session_factory() as session:
        yield session
