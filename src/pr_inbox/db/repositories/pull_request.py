"""Repository for PullRequest model CRUD operations."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pr_inbox.db.models import PullRequest, PullRequestAttention, Repository

from .base import BaseRepository

# Identity columns are never part of the conflict update
_IDENTITY_COLUMNS = frozenset({"id", "repository_id", "number", "created_at"})


class PullRequestRepository(BaseRepository[PullRequest]):
    """Repository for mirrored pull requests.

    Writes go through :meth:`upsert`, a single INSERT ... ON CONFLICT keyed
    on (repository_id, number), so two writers can never create duplicate
    rows for the same pull request.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PullRequest)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    async def get_by_number(self, repository_id: int, number: int) -> PullRequest | None:
        """Get a pull request by repository ID and number."""
        stmt = select(PullRequest).where(
            PullRequest.repository_id == repository_id,
            PullRequest.number == number,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_full_name(self, full_name: str, number: int) -> PullRequest | None:
        """Get a pull request by repository full name and number."""
        stmt = (
            select(PullRequest)
            .join(Repository)
            .where(Repository.full_name == full_name, PullRequest.number == number)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_repository(self, repository_id: int) -> list[PullRequest]:
        """List a repository's pull requests with their attention rows loaded."""
        stmt = (
            select(PullRequest)
            .where(PullRequest.repository_id == repository_id)
            .options(selectinload(PullRequest.attention))
            .order_by(PullRequest.number)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_needing_attention(self, limit: int = 50) -> list[PullRequest]:
        """Pull requests flagged for attention, highest urgency first."""
        stmt = (
            select(PullRequest)
            .join(PullRequestAttention)
            .where(PullRequestAttention.needs_attention.is_(True))
            .options(selectinload(PullRequest.attention), selectinload(PullRequest.repository))
            .order_by(PullRequestAttention.urgency_score.desc(), PullRequest.id)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Upsert
    # -------------------------------------------------------------------------

    async def upsert(self, repository_id: int, number: int, fields: dict[str, Any]) -> PullRequest:
        """Insert or update a pull request in one statement.

        Args:
            repository_id: Owning repository row ID
            number: Pull request number
            fields: Column values for every mutable column

        Returns:
            The stored pull request, reloaded from the database
        """
        values = {k: v for k, v in fields.items() if k not in _IDENTITY_COLUMNS}
        stmt = self._insert().values(repository_id=repository_id, number=number, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["repository_id", "number"],
            set_={key: stmt.excluded[key] for key in values},
        ).returning(PullRequest.id)

        result = await self._session.execute(stmt)
        pr_id = result.scalar_one()

        pr = await self._session.get(PullRequest, pr_id, populate_existing=True)
        assert pr is not None
        return pr
