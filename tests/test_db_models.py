"""Tests for SQLAlchemy ORM models and column types."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from pr_inbox.db.models import AiCacheEntry, PRState, PullRequest, PullRequestAttention
from tests.conftest import JAN_16, JAN_20
from tests.factories import make_pull_request, make_repository, make_tracked_repository


class TestUTCDateTime:
    """Tests for the UTCDateTime column type."""

    async def test_round_trips_as_aware_utc(self, session_factory):
        async with session_factory() as session, session.begin():
            repo = make_repository(session)
            await session.flush()
            make_pull_request(session, repo, github_updated_at=JAN_16)

        async with session_factory() as session:
            pr = (await session.execute(select(PullRequest))).scalar_one()
            assert pr.github_updated_at == JAN_16
            assert pr.github_updated_at.tzinfo is UTC

    async def test_normalizes_other_offsets(self, session_factory):
        plus_two = timezone(timedelta(hours=2))
        local = datetime(2024, 1, 16, 16, 0, tzinfo=plus_two)

        async with session_factory() as session, session.begin():
            repo = make_repository(session)
            await session.flush()
            make_pull_request(session, repo, github_updated_at=local)

        async with session_factory() as session:
            pr = (await session.execute(select(PullRequest))).scalar_one()
            assert pr.github_updated_at == JAN_16
            assert pr.github_updated_at.tzinfo is UTC


class TestConstraints:
    """Tests for uniqueness and scope constraints."""

    async def test_repository_full_name_unique(self, db_session):
        make_repository(db_session)
        await db_session.flush()
        make_repository(db_session)

        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_pull_request_number_unique_per_repository(self, db_session):
        repo = make_repository(db_session)
        other = make_repository(db_session, "octo/gadgets")
        await db_session.flush()
        make_pull_request(db_session, repo, number=1)
        make_pull_request(db_session, other, number=1)
        await db_session.flush()

        make_pull_request(db_session, repo, number=1)
        with pytest.raises(IntegrityError):
            await db_session.flush()

    async def test_tracking_unique_per_user(self, db_session):
        make_tracked_repository(db_session, "alice")
        make_tracked_repository(db_session, "bob")
        await db_session.flush()

        make_tracked_repository(db_session, "alice")
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.parametrize(
        "scope",
        [{}, {"pull_request_id": 1, "repository": "octo/widgets"}],
        ids=["no-scope", "both-scopes"],
    )
    async def test_ai_cache_requires_exactly_one_scope(self, db_session, scope):
        repo = make_repository(db_session)
        await db_session.flush()
        make_pull_request(db_session, repo, number=1)
        await db_session.flush()

        db_session.add(
            AiCacheEntry(
                feature_type="ai_summary",
                result_text="x",
                generated_at=JAN_20,
                expires_at=JAN_20,
                **scope,
            )
        )
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestRelationships:
    """Tests for ORM relationships and cascades."""

    async def test_pull_request_defaults(self, db_session):
        repo = make_repository(db_session)
        await db_session.flush()
        pr = make_pull_request(db_session, repo)
        await db_session.flush()

        assert pr.state == PRState.OPEN
        assert pr.is_open
        assert pr.repository_id == repo.id

    async def test_deleting_repository_removes_pull_requests(self, db_session):
        repo = make_repository(db_session)
        await db_session.flush()
        pr = make_pull_request(db_session, repo)
        await db_session.flush()
        db_session.add(PullRequestAttention(pull_request_id=pr.id, last_synced_at=JAN_20))
        await db_session.flush()

        await db_session.delete(repo)
        await db_session.flush()

        assert (await db_session.execute(select(PullRequest))).first() is None
