"""Repository pattern implementation for database access.

This module provides repository classes that encapsulate all database
access logic, providing a clean abstraction over SQLAlchemy models.
"""

from .action_log import ActionLogRepository
from .ai_cache import AiCacheRepository
from .attention import AttentionRepository
from .base import BaseRepository
from .pull_request import PullRequestRepository
from .repository import RepositoryRepository
from .sync_run import SyncRunRepository
from .tracked_repository import TrackedRepositoryRepository

__all__ = [
    "ActionLogRepository",
    "AiCacheRepository",
    "AttentionRepository",
    "BaseRepository",
    "PullRequestRepository",
    "RepositoryRepository",
    "SyncRunRepository",
    "TrackedRepositoryRepository",
]
