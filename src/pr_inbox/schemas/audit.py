"""Schemas for audit log entries."""

from datetime import datetime
from typing import Any

from pr_inbox.db.models import ActionResultStatus, ActionType

from .base import SchemaBase


class ActionLogRead(SchemaBase):
    """Schema for reading an audited action."""

    id: int
    action_type: ActionType
    result_status: ActionResultStatus
    repository: str
    pull_number: int | None
    actor_login: str | None
    payload: dict[str, Any] | None
    error_message: str | None
    created_at: datetime
