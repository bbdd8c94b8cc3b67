"""TTL cache for AI enrichment results, backed by the ai_cache table.

Expiry is checked when reading; expired rows stay in storage until they
are overwritten (pull request scope) or superseded (repository scope).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pr_inbox.config import CacheConfig
from pr_inbox.db.models import AiCacheEntry
from pr_inbox.db.repositories import AiCacheRepository
from pr_inbox.logging import bind_feature
from pr_inbox.schemas.cache import CachedResult, CacheKey, PullRequestKey, RepositoryKey


def _to_result(entry: AiCacheEntry) -> CachedResult:
    return CachedResult(
        feature_type=entry.feature_type,
        result_json=entry.result_json,
        result_text=entry.result_text,
        generated_at=entry.generated_at,
        expires_at=entry.expires_at,
    )


class AiResultCache:
    """Keyed TTL cache scoped by pull request or repository.

    Usage:
        cache = AiResultCache(get_session_factory(), settings.cache)

        key = PullRequestKey(pull_request_id=pr.id)
        hit = await cache.get_cached_result("ai_summary", key)
        if hit is None:
            summary = await runner(prompt, context)
            await cache.set_cached_result("ai_summary", key, {"summary": summary})
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: CacheConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or CacheConfig()
        self._clock = clock or (lambda: datetime.now(UTC))

    def ttl_for(self, feature_type: str, ttl_hours: float | None = None) -> timedelta:
        """Caller-supplied TTL, else the configured default for the feature."""
        if ttl_hours is not None:
            return timedelta(hours=ttl_hours)
        return self._config.ttl_for(feature_type)

    async def get_cached_result(self, feature_type: str, key: CacheKey) -> CachedResult | None:
        """Return the live entry for a key, or None on a miss or expiry."""
        now = self._clock()
        async with self._session_factory() as session:
            repo = AiCacheRepository(session)
            if isinstance(key, PullRequestKey):
                entry = await repo.get_for_pull_request(key.pull_request_id, feature_type)
                if entry is not None and entry.expires_at <= now:
                    bind_feature(feature_type).debug(
                        "Cache entry for PR {} expired at {}", key.pull_request_id, entry.expires_at
                    )
                    entry = None
            else:
                entry = await repo.get_latest_live_for_repository(
                    key.repository, feature_type, now
                )

        return _to_result(entry) if entry is not None else None

    async def set_cached_result(
        self,
        feature_type: str,
        key: CacheKey,
        result: Any,
        *,
        result_text: str | None = None,
        ttl_hours: float | None = None,
    ) -> CachedResult:
        """Store a result.

        Pull-request entries are upserted in place with a single statement;
        repository entries are appended and the newest live one wins.

        Args:
            feature_type: Enrichment feature (e.g. "ai_summary")
            key: PullRequestKey or RepositoryKey
            result: JSON-serializable result
            result_text: Optional plain-text rendering
            ttl_hours: Override of the feature's default TTL

        Returns:
            The stored entry
        """
        generated_at = self._clock()
        expires_at = generated_at + self.ttl_for(feature_type, ttl_hours)

        async with self._session_factory() as session, session.begin():
            repo = AiCacheRepository(session)
            if isinstance(key, PullRequestKey):
                await repo.upsert_for_pull_request(
                    key.pull_request_id,
                    feature_type,
                    result_json=result,
                    result_text=result_text,
                    generated_at=generated_at,
                    expires_at=expires_at,
                )
            else:
                await repo.insert_for_repository(
                    key.repository,
                    feature_type,
                    result_json=result,
                    result_text=result_text,
                    generated_at=generated_at,
                    expires_at=expires_at,
                )

        bind_feature(feature_type).debug("Cached result until {}", expires_at.isoformat())
        return CachedResult(
            feature_type=feature_type,
            result_json=result,
            result_text=result_text,
            generated_at=generated_at,
            expires_at=expires_at,
        )

    async def invalidate(self, feature_type: str, key: CacheKey) -> int:
        """Delete every entry for a feature in a key's scope.

        Returns:
            Number of rows removed
        """
        async with self._session_factory() as session, session.begin():
            repo = AiCacheRepository(session)
            if isinstance(key, RepositoryKey):
                return await repo.delete_entries(feature_type, repository=key.repository)
            return await repo.delete_entries(feature_type, pull_request_id=key.pull_request_id)
