"""Pytest configuration and shared fixtures.

Usage Guide:
- For ORM model tests: import factories from tests.factories
- For services that open their own sessions: use session_factory
- For GitHub API tests: import dict factories (make_github_pr, ...) from tests.factories
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from pr_inbox.config import Settings, SyncConfig, get_settings
from pr_inbox.db.engine import create_tables, make_session_factory
from pr_inbox.db.models import Base

# -----------------------------------------------------------------------------
# Test Timeline Constants
#
# Define a consistent "test epoch" for deterministic date matching across tests.
# All hardcoded dates should reference these constants for consistency.
# -----------------------------------------------------------------------------

JAN_10 = datetime(2024, 1, 10, 9, 0, 0, tzinfo=UTC)   # Older PR opened
JAN_15 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)  # PR opened
JAN_16 = datetime(2024, 1, 16, 14, 0, 0, tzinfo=UTC)  # PR updated
JAN_20 = datetime(2024, 1, 20, 12, 0, 0, tzinfo=UTC)  # "Now" for sync and scoring

JAN_10_ISO = "2024-01-10T09:00:00Z"
JAN_15_ISO = "2024-01-15T10:00:00Z"
JAN_16_ISO = "2024-01-16T14:00:00Z"
JAN_20_ISO = "2024-01-20T12:00:00Z"


class FakeClock:
    """Settable clock for code that takes ``clock=``."""

    def __init__(self, now: datetime = JAN_20) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


# -----------------------------------------------------------------------------
# Database Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine for tests.

    A file (rather than :memory:) lets several sessions see the same data,
    which services that open one session per operation rely on.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return make_session_factory(test_engine)


@pytest.fixture
async def db_session(session_factory):
    """Create an async session with auto-rollback.

    Changes are rolled back after each test to ensure isolation.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


# -----------------------------------------------------------------------------
# Utility Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to JAN_20."""
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with fast, serial retries."""
    return Settings(
        _env_file=None,
        github_token="test-token",
        sync=SyncConfig(
            max_concurrent_repositories=1,
            max_concurrent_pull_requests=1,
            backoff_base_seconds=0.0,
            backoff_max_seconds=0.0,
        ),
    )


@pytest.fixture
def cli_database(tmp_path, monkeypatch):
    """Point CLI commands at a fresh SQLite file with tables created.

    CLI commands build their own engine from settings, so the URL goes
    through the environment. Yields the database URL.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")
    get_settings.cache_clear()

    async def _create() -> None:
        engine = create_async_engine(url)
        await create_tables(engine)
        await engine.dispose()

    asyncio.run(_create())
    yield url
    get_settings.cache_clear()
