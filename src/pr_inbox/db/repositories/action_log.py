"""Repository for ActionLog audit entries."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import ActionLog, ActionResultStatus, ActionType

from .base import BaseRepository


class ActionLogRepository(BaseRepository[ActionLog]):
    """Append-only storage for audited actions."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ActionLog)

    async def write(
        self,
        action_type: ActionType,
        result_status: ActionResultStatus,
        repository: str,
        created_at: datetime,
        *,
        pull_number: int | None = None,
        actor_login: str | None = None,
        payload: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> ActionLog:
        """Append an action record."""
        entry = ActionLog(
            action_type=action_type,
            result_status=result_status,
            repository=repository,
            pull_number=pull_number,
            actor_login=actor_login,
            payload=payload,
            error_message=error_message,
            created_at=created_at,
        )
        self.add(entry)
        await self.flush()
        return entry

    async def update_status(
        self,
        entry_id: int,
        result_status: ActionResultStatus,
        *,
        error_message: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ActionLog | None:
        """Move an entry to its final status.

        Returns:
            Updated entry, or None if it does not exist
        """
        entry = await self.get_by_id(entry_id)
        if entry is None:
            return None
        entry.result_status = result_status
        if error_message is not None:
            entry.error_message = error_message
        if payload is not None:
            entry.payload = payload
        await self.flush()
        return entry

    async def get_latest(
        self,
        action_type: ActionType,
        repository: str,
        pull_number: int | None = None,
    ) -> ActionLog | None:
        """Most recent entry of a type for a repository (and pull request)."""
        stmt = select(ActionLog).where(
            ActionLog.action_type == action_type,
            ActionLog.repository == repository,
        )
        if pull_number is not None:
            stmt = stmt.where(ActionLog.pull_number == pull_number)
        stmt = stmt.order_by(ActionLog.created_at.desc(), ActionLog.id.desc()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
