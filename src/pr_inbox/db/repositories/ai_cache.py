"""Repository for AiCacheEntry rows."""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import AiCacheEntry

from .base import BaseRepository


class AiCacheRepository(BaseRepository[AiCacheEntry]):
    """Storage for AI cache entries.

    Expiry is not enforced here beyond the repository-scoped lookup;
    callers compare ``expires_at`` against their own clock.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AiCacheEntry)

    # -------------------------------------------------------------------------
    # Pull-request scope
    # -------------------------------------------------------------------------

    async def get_for_pull_request(
        self, pull_request_id: int, feature_type: str
    ) -> AiCacheEntry | None:
        """Get the single entry for (pull_request_id, feature_type), expired or not."""
        stmt = select(AiCacheEntry).where(
            AiCacheEntry.pull_request_id == pull_request_id,
            AiCacheEntry.feature_type == feature_type,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_for_pull_request(
        self,
        pull_request_id: int,
        feature_type: str,
        *,
        result_json: Any,
        result_text: str | None,
        generated_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Write the entry for (pull_request_id, feature_type) in one statement."""
        values = {
            "result_json": result_json,
            "result_text": result_text,
            "generated_at": generated_at,
            "expires_at": expires_at,
        }
        stmt = self._insert().values(
            pull_request_id=pull_request_id,
            repository=None,
            feature_type=feature_type,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["pull_request_id", "feature_type"],
            set_={key: stmt.excluded[key] for key in values},
        )
        await self._session.execute(stmt)

    # -------------------------------------------------------------------------
    # Repository scope
    # -------------------------------------------------------------------------

    async def get_latest_live_for_repository(
        self, repository: str, feature_type: str, now: datetime
    ) -> AiCacheEntry | None:
        """Most recently generated entry for the repository that has not expired."""
        stmt = (
            select(AiCacheEntry)
            .where(
                AiCacheEntry.repository == repository,
                AiCacheEntry.feature_type == feature_type,
                AiCacheEntry.expires_at > now,
            )
            .order_by(AiCacheEntry.generated_at.desc(), AiCacheEntry.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_for_repository(
        self,
        repository: str,
        feature_type: str,
        *,
        result_json: Any,
        result_text: str | None,
        generated_at: datetime,
        expires_at: datetime,
    ) -> AiCacheEntry:
        """Append a new repository-scoped entry."""
        entry = AiCacheEntry(
            feature_type=feature_type,
            repository=repository,
            result_json=result_json,
            result_text=result_text,
            generated_at=generated_at,
            expires_at=expires_at,
        )
        self.add(entry)
        await self.flush()
        return entry

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def delete_entries(
        self,
        feature_type: str,
        *,
        pull_request_id: int | None = None,
        repository: str | None = None,
    ) -> int:
        """Delete entries for a feature in one scope.

        Returns:
            Number of rows deleted
        """
        stmt = delete(AiCacheEntry).where(AiCacheEntry.feature_type == feature_type)
        if pull_request_id is not None:
            stmt = stmt.where(AiCacheEntry.pull_request_id == pull_request_id)
        else:
            stmt = stmt.where(AiCacheEntry.repository == repository)
        result = await self._session.execute(stmt)
        return result.rowcount or 0
