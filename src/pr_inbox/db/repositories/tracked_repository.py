"""Repository for TrackedRepository (user subscriptions)."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import TrackedRepository

from .base import BaseRepository


class TrackedRepositoryRepository(BaseRepository[TrackedRepository]):
    """Repository for a user's tracked repositories."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TrackedRepository)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    async def get(self, user_id: str, full_name: str) -> TrackedRepository | None:
        """Get one user's tracking of a repository."""
        stmt = select(TrackedRepository).where(
            TrackedRepository.user_id == user_id,
            TrackedRepository.full_name == full_name,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[TrackedRepository]:
        """List a user's trackings ordered by repository name."""
        stmt = (
            select(TrackedRepository)
            .where(TrackedRepository.user_id == user_id)
            .order_by(TrackedRepository.full_name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_distinct_full_names(self) -> list[str]:
        """Every repository tracked by at least one user."""
        stmt = select(TrackedRepository.full_name).distinct().order_by(TrackedRepository.full_name)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def is_tracked(self, full_name: str, user_id: str | None = None) -> bool:
        """Check whether a repository is tracked (by a given user, or by anyone)."""
        stmt = select(TrackedRepository.id).where(TrackedRepository.full_name == full_name)
        if user_id is not None:
            stmt = stmt.where(TrackedRepository.user_id == user_id)
        result = await self._session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    # -------------------------------------------------------------------------
    # Create/Update Methods
    # -------------------------------------------------------------------------

    async def track(self, user_id: str, full_name: str) -> tuple[TrackedRepository, bool]:
        """Start tracking a repository for a user.

        Returns:
            Tuple of (tracking, created); tracking an already tracked
            repository is a no-op
        """
        existing = await self.get(user_id, full_name)
        if existing is not None:
            return existing, False

        tracking = TrackedRepository(user_id=user_id, full_name=full_name)
        self.add(tracking)
        await self.flush()
        return tracking, True

    async def untrack(self, user_id: str, full_name: str) -> bool:
        """Stop tracking a repository. Returns False if it was not tracked."""
        existing = await self.get(user_id, full_name)
        if existing is None:
            return False
        await self.delete(existing)
        await self.flush()
        return True

    async def link_repository(self, full_name: str, repository_id: int) -> int:
        """Point every unlinked tracking of full_name at its Repository row.

        Returns:
            Number of trackings updated
        """
        stmt = select(TrackedRepository).where(
            TrackedRepository.full_name == full_name,
            TrackedRepository.repository_id.is_(None),
        )
        result = await self._session.execute(stmt)
        trackings = list(result.scalars().all())
        for tracking in trackings:
            tracking.repository_id = repository_id
        if trackings:
            await self.flush()
        return len(trackings)
