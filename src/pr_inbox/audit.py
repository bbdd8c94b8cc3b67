"""Append-only audit log of sync runs and enrichment calls."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pr_inbox.db.models import ActionResultStatus, ActionType
from pr_inbox.db.repositories import ActionLogRepository
from pr_inbox.logging import get_logger
from pr_inbox.schemas.audit import ActionLogRead

logger = get_logger(__name__)

STALE_RUNNING_MESSAGE = "Process timed out (no exit signal received)"


class AuditLog:
    """Writes and reads action records, one short transaction per call.

    A RUNNING entry older than ``stale_after`` is treated as failed the
    next time its status is checked, since the process that owned it may
    have died without reporting back.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        stale_after: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._stale_after = stale_after
        self._clock = clock or (lambda: datetime.now(UTC))

    async def record(
        self,
        action_type: ActionType,
        status: ActionResultStatus,
        repository: str,
        *,
        pull_number: int | None = None,
        actor_login: str | None = None,
        payload: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> int:
        """Append an entry and return its ID."""
        async with self._session_factory() as session, session.begin():
            entry = await ActionLogRepository(session).write(
                action_type,
                status,
                repository,
                self._clock(),
                pull_number=pull_number,
                actor_login=actor_login,
                payload=payload,
                error_message=error_message,
            )
            return entry.id

    async def start(
        self,
        action_type: ActionType,
        repository: str,
        *,
        pull_number: int | None = None,
        actor_login: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> int:
        """Append a RUNNING entry for a long action."""
        return await self.record(
            action_type,
            ActionResultStatus.RUNNING,
            repository,
            pull_number=pull_number,
            actor_login=actor_login,
            payload=payload,
        )

    async def complete(
        self,
        entry_id: int,
        status: ActionResultStatus,
        *,
        error_message: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Move a RUNNING entry to SUCCESS or FAILED."""
        async with self._session_factory() as session, session.begin():
            entry = await ActionLogRepository(session).update_status(
                entry_id, status, error_message=error_message, payload=payload
            )
        if entry is None:
            logger.warning("Audit entry {} vanished before completion", entry_id)

    async def get_status(
        self,
        action_type: ActionType,
        repository: str,
        pull_number: int | None = None,
    ) -> ActionLogRead | None:
        """Latest entry for an action, failing it first if it is a stale RUNNING one."""
        async with self._session_factory() as session, session.begin():
            repo = ActionLogRepository(session)
            entry = await repo.get_latest(action_type, repository, pull_number)
            if entry is None:
                return None

            if (
                entry.result_status == ActionResultStatus.RUNNING
                and self._clock() - entry.created_at > self._stale_after
            ):
                logger.warning(
                    "Marking stale {} entry {} for {} as failed",
                    action_type.value,
                    entry.id,
                    repository,
                )
                await repo.update_status(
                    entry.id, ActionResultStatus.FAILED, error_message=STALE_RUNNING_MESSAGE
                )

            return ActionLogRead.from_orm(entry)
