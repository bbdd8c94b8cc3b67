"""Repository for GitHub Repository model CRUD operations."""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import Repository

from .base import BaseRepository


class RepositoryRepository(BaseRepository[Repository]):
    """Repository for canonical GitHub repository rows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Repository)

    async def get_by_full_name(self, full_name: str) -> Repository | None:
        """Get a repository by its full name (owner/name)."""
        return await self._get_by_field("full_name", full_name)

    async def get_or_create(
        self,
        full_name: str,
        *,
        github_id: int | None = None,
        default_branch: str | None = None,
    ) -> tuple[Repository, bool]:
        """Get an existing repository or create it.

        Remote metadata, when supplied, fills in columns that are still empty
        on an existing row.

        Args:
            full_name: Repository in owner/name form
            github_id: GitHub numeric ID, if known
            default_branch: Default branch name, if known

        Returns:
            Tuple of (repository, created) where created is True if new
        """
        existing = await self.get_by_full_name(full_name)
        if existing is not None:
            if github_id is not None and existing.github_id is None:
                existing.github_id = github_id
            if default_branch is not None and existing.default_branch is None:
                existing.default_branch = default_branch
            await self.flush()
            return existing, False

        owner, name = full_name.split("/", 1)
        repo = Repository(
            owner=owner,
            name=name,
            full_name=full_name,
            github_id=github_id,
            default_branch=default_branch,
        )
        self.add(repo)
        await self.flush()
        return repo, True

    async def update_last_synced(
        self,
        repository_id: int,
        synced_at: datetime,
    ) -> Repository | None:
        """Update the last_synced_at timestamp for a repository.

        Returns:
            Updated repository or None if not found
        """
        repo = await self.get_by_id(repository_id)
        if repo is None:
            return None

        repo.last_synced_at = synced_at
        await self.flush()
        return repo
