"""Engine and session plumbing for the PR inbox store.

One lazily built engine per process; services receive a session factory
and open a short session per unit of work (one reconciliation, one audit
write), while CLI commands use :func:`get_session`.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pr_inbox.config import get_settings
from pr_inbox.db.models import Base

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Engine for ``settings.database_url``, built on first use."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_settings().database_url,
            echo=False,
            # Concurrent reconciliations each open a connection; pooled SQLite
            # connections would contend for the write lock.
            poolclass=pool.NullPool,
        )
    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory bound to an engine.

    Each reconciliation opens its own session from this factory, so the
    factory rather than a session is what gets passed to services.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the orchestrator, audit log and AI cache."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = make_session_factory(get_engine())
    return _async_session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One-shot session for CLI commands; commits on exit, rolls back on error.

    Usage:
        async with get_session() as session:
            repos = await TrackedRepositoryRepository(session).list_for_user("alice")
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create missing tables (``prinbox init-db``); existing ones are left alone."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(engine: AsyncEngine | None = None) -> None:
    """Drop every table, data included. Test use only."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def dispose_engine() -> None:
    """Close connections and forget the engine so the next call rebuilds it.

    CLI commands call this on exit; a changed ``DATABASE_URL`` takes effect
    after it.
    """
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
