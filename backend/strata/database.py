"""
Strata Backend: Database Engine and Session Factory
===================================================

What:  Async SQLAlchemy engine/session builders and the declarative Base.
How:   build_engine() creates an engine with connection pooling from Settings;
       build_session_factory() wraps it. There is no module-level engine: the
       SqlUserRepository adapter owns the engine it builds and disposes it at
       shutdown.

Connection Pooling Strategy:
    pool_size / max_overflow:  from settings (ignored for SQLite)
    pool_pre_ping:             validates connections before use
    pool_recycle=3600:         recycles connections every hour
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from strata.config import Settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine described by `settings`.

    SQLite drivers do not take pool sizing arguments, so those are only
    passed for server databases.
    """
    options: Dict[str, Any] = {
        "pool_pre_ping": settings.db_pool_pre_ping,
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
        )
    return create_async_engine(settings.database_url, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False: attributes stay readable after commit, so rows
    can be converted to entities outside the transaction.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables registered on Base.metadata that do not exist yet."""
    # Imported for its side effect of registering the table on Base.metadata
    from strata.models import user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
