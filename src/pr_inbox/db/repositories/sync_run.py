"""Repository for SyncRun audit records."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import SyncRun, SyncStatus, SyncTrigger

from .base import BaseRepository


class SyncRunRepository(BaseRepository[SyncRun]):
    """Repository for sync run audit rows.

    A run is created RUNNING and finalized exactly once.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, SyncRun)

    async def get_by_run_id(self, run_id: str) -> SyncRun | None:
        """Get a run by its public run ID."""
        return await self._get_by_field("run_id", run_id)

    async def get_latest(self, user_id: str | None = None) -> SyncRun | None:
        """Get the most recently started run, optionally for one user."""
        stmt = select(SyncRun)
        if user_id is not None:
            stmt = stmt.where(SyncRun.user_id == user_id)
        stmt = stmt.order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def start(
        self,
        run_id: str,
        trigger: SyncTrigger,
        started_at: datetime,
        *,
        user_id: str | None,
        viewer_login: str | None,
        tracked_repos: list[str],
    ) -> SyncRun:
        """Create a RUNNING sync run."""
        run = SyncRun(
            run_id=run_id,
            trigger=trigger,
            status=SyncStatus.RUNNING,
            user_id=user_id,
            viewer_login=viewer_login,
            tracked_repos=list(tracked_repos),
            started_at=started_at,
        )
        self.add(run)
        await self.flush()
        return run

    async def finish(
        self,
        run_id: str,
        status: SyncStatus,
        finished_at: datetime,
        *,
        pulled_count: int,
        upserted_count: int,
        errors: list[dict[str, Any]],
    ) -> SyncRun:
        """Finalize a run with its counts and itemized errors.

        Raises:
            ValueError: If the run does not exist or was already finalized
        """
        run = await self.get_by_run_id(run_id)
        if run is None:
            raise ValueError(f"Unknown sync run: {run_id}")
        if run.status != SyncStatus.RUNNING:
            raise ValueError(f"Sync run {run_id} already finished with {run.status.value}")

        run.status = status
        run.finished_at = finished_at
        run.pulled_count = pulled_count
        run.upserted_count = upserted_count
        run.error_count = len(errors)
        run.errors = list(errors)
        await self.flush()
        return run
