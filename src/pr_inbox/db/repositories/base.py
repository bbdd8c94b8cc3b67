"""Base repository pattern implementation for async SQLAlchemy.

Provides session handling, common reads and writes, and a dialect-aware
INSERT builder for the atomic upserts used by the sync and cache paths.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Base repository with common async session handling.

    Repositories never commit: the caller owns the session and its
    transaction boundary.

    Usage:
        class SyncRunRepository(BaseRepository[SyncRun]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, SyncRun)

            async def get_by_run_id(self, run_id: str) -> SyncRun | None:
                return await self._get_by_field("run_id", run_id)
    """

    def __init__(self, session: AsyncSession, model_class: type[ModelT]) -> None:
        """Initialize the repository with a session.

        Args:
            session: Async SQLAlchemy session (caller manages lifecycle)
            model_class: The SQLAlchemy model class this repository manages
        """
        self._session = session
        self._model_class = model_class

    @property
    def session(self) -> AsyncSession:
        """Access the underlying session."""
        return self._session

    # -------------------------------------------------------------------------
    # Common Read Operations
    # -------------------------------------------------------------------------

    async def get_by_id(self, id: int) -> ModelT | None:
        """Get an entity by its primary key ID."""
        return await self._session.get(self._model_class, id)

    async def _get_by_field(self, field_name: str, value: object) -> ModelT | None:
        """Get an entity by a specific field value.

        Args:
            field_name: Name of the model field
            value: Value to match

        Returns:
            First matching entity or None
        """
        stmt = select(self._model_class).where(
            getattr(self._model_class, field_name) == value
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def get_all(self, limit: int | None = None) -> list[ModelT]:
        """Get all entities, optionally limited."""
        stmt = select(self._model_class)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        """Count total entities of this type."""
        stmt = select(func.count()).select_from(self._model_class)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    # -------------------------------------------------------------------------
    # Common Write Operations
    # -------------------------------------------------------------------------

    def add(self, entity: ModelT) -> ModelT:
        """Add an entity to the session (does not flush)."""
        self._session.add(entity)
        return entity

    async def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        await self._session.flush()

    async def refresh(self, entity: ModelT) -> ModelT:
        """Refresh an entity from the database."""
        await self._session.refresh(entity)
        return entity

    async def delete(self, entity: ModelT) -> None:
        """Mark an entity for deletion (happens on flush/commit)."""
        await self._session.delete(entity)

    # -------------------------------------------------------------------------
    # Upsert Support
    # -------------------------------------------------------------------------

    def _insert(self) -> Any:
        """Build a dialect-specific INSERT supporting ON CONFLICT.

        Returns:
            A SQLite or PostgreSQL ``Insert`` for this repository's model

        Raises:
            NotImplementedError: If the bound dialect has no ON CONFLICT support
        """
        dialect = self._session.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite.insert(self._model_class)
        if dialect == "postgresql":
            return postgresql.insert(self._model_class)
        raise NotImplementedError(f"Atomic upsert not supported for dialect '{dialect}'")
