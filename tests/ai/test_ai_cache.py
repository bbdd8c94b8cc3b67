"""Tests for the AI result cache."""

import pytest
from sqlalchemy import func, select

from pr_inbox.ai.cache import AiResultCache
from pr_inbox.config import CacheConfig
from pr_inbox.db.models import AiCacheEntry
from pr_inbox.schemas.cache import PullRequestKey, RepositoryKey
from tests.conftest import JAN_20
from tests.factories import make_pull_request, make_repository


@pytest.fixture
async def pr_id(session_factory) -> int:
    async with session_factory() as session, session.begin():
        repo = make_repository(session)
        pr = make_pull_request(session, repo, number=7)
        await session.flush()
        return pr.id


@pytest.fixture
def cache(session_factory, clock) -> AiResultCache:
    return AiResultCache(session_factory, CacheConfig(), clock=clock)


async def count_entries(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(AiCacheEntry))


class TestPullRequestScope:
    """Tests for PR-scoped entries."""

    async def test_miss(self, cache, pr_id):
        key = PullRequestKey(pull_request_id=pr_id)

        assert await cache.get_cached_result("ai_summary", key) is None

    async def test_set_then_get(self, cache, pr_id):
        key = PullRequestKey(pull_request_id=pr_id)

        stored = await cache.set_cached_result("ai_summary", key, {"summary": "Adds login"})
        hit = await cache.get_cached_result("ai_summary", key)

        assert hit == stored
        assert hit.result_json == {"summary": "Adds login"}
        assert hit.generated_at == JAN_20

    async def test_default_ttl_per_feature(self, cache, pr_id, clock):
        key = PullRequestKey(pull_request_id=pr_id)

        stored = await cache.set_cached_result("ai_reviewer_suggest", key, ["carol"])

        assert (stored.expires_at - stored.generated_at).total_seconds() == 6 * 3600

    async def test_expired_entry_is_a_miss(self, cache, pr_id, clock):
        key = PullRequestKey(pull_request_id=pr_id)
        await cache.set_cached_result("ai_summary", key, {"summary": "x"}, ttl_hours=1)

        clock.advance(minutes=59)
        assert await cache.get_cached_result("ai_summary", key) is not None

        clock.advance(minutes=1)
        assert await cache.get_cached_result("ai_summary", key) is None

    async def test_overwrite_keeps_single_row(self, cache, pr_id, session_factory, clock):
        key = PullRequestKey(pull_request_id=pr_id)
        await cache.set_cached_result("ai_summary", key, {"summary": "old"})
        clock.advance(hours=1)

        await cache.set_cached_result("ai_summary", key, {"summary": "new"}, result_text="new")

        hit = await cache.get_cached_result("ai_summary", key)
        assert hit.result_json == {"summary": "new"}
        assert hit.result_text == "new"
        assert await count_entries(session_factory) == 1

    async def test_features_are_separate(self, cache, pr_id):
        key = PullRequestKey(pull_request_id=pr_id)
        await cache.set_cached_result("ai_summary", key, {"summary": "x"})

        assert await cache.get_cached_result("ai_label_suggest", key) is None

    async def test_invalidate(self, cache, pr_id):
        key = PullRequestKey(pull_request_id=pr_id)
        await cache.set_cached_result("ai_summary", key, {"summary": "x"})

        assert await cache.invalidate("ai_summary", key) == 1
        assert await cache.get_cached_result("ai_summary", key) is None


class TestRepositoryScope:
    """Tests for repository-scoped entries."""

    async def test_newest_live_entry_wins(self, cache, session_factory, clock):
        key = RepositoryKey(repository="octo/widgets")
        await cache.set_cached_result("ai_digest", key, {"digest": 1})
        clock.advance(hours=1)
        await cache.set_cached_result("ai_digest", key, {"digest": 2})

        hit = await cache.get_cached_result("ai_digest", key)

        assert hit.result_json == {"digest": 2}
        assert await count_entries(session_factory) == 2

    async def test_expired_newer_entry_falls_back_to_live_older(self, cache, clock):
        key = RepositoryKey(repository="octo/widgets")
        await cache.set_cached_result("ai_digest", key, {"digest": "long"}, ttl_hours=48)
        clock.advance(hours=1)
        await cache.set_cached_result("ai_digest", key, {"digest": "short"}, ttl_hours=1)

        clock.advance(hours=2)
        hit = await cache.get_cached_result("ai_digest", key)

        assert hit.result_json == {"digest": "long"}

    async def test_repositories_are_separate(self, cache):
        await cache.set_cached_result("ai_digest", RepositoryKey(repository="octo/widgets"), [])

        other = RepositoryKey(repository="octo/other")
        assert await cache.get_cached_result("ai_digest", other) is None

    async def test_invalidate(self, cache):
        key = RepositoryKey(repository="octo/widgets")
        await cache.set_cached_result("ai_digest", key, [1])
        await cache.set_cached_result("ai_digest", key, [2])

        assert await cache.invalidate("ai_digest", key) == 2


class TestCacheKeys:
    """Tests for cache key validation."""

    def test_repository_key_requires_owner_and_name(self):
        with pytest.raises(ValueError):
            RepositoryKey(repository="widgets")

    def test_pull_request_key_requires_positive_id(self):
        with pytest.raises(ValueError):
            PullRequestKey(pull_request_id=0)
