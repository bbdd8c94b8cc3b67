"""Database module for PR Inbox."""

from pr_inbox.db.engine import (
    create_tables,
    dispose_engine,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    make_session_factory,
)
from pr_inbox.db.models import (
    ActionLog,
    ActionResultStatus,
    ActionType,
    AiCacheEntry,
    Base,
    CiState,
    PRState,
    PullRequest,
    PullRequestAttention,
    Repository,
    ReviewState,
    SyncRun,
    SyncStatus,
    SyncTrigger,
    TrackedRepository,
)
from pr_inbox.db.repositories import (
    ActionLogRepository,
    AiCacheRepository,
    AttentionRepository,
    BaseRepository,
    PullRequestRepository,
    RepositoryRepository,
    SyncRunRepository,
    TrackedRepositoryRepository,
)

__all__ = [
    # Models
    "ActionLog",
    "ActionResultStatus",
    "ActionType",
    "AiCacheEntry",
    "Base",
    "CiState",
    "PRState",
    "PullRequest",
    "PullRequestAttention",
    "Repository",
    "ReviewState",
    "SyncRun",
    "SyncStatus",
    "SyncTrigger",
    "TrackedRepository",
    # Engine
    "create_tables",
    "dispose_engine",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "make_session_factory",
    # Repositories
    "ActionLogRepository",
    "AiCacheRepository",
    "AttentionRepository",
    "BaseRepository",
    "PullRequestRepository",
    "RepositoryRepository",
    "SyncRunRepository",
    "TrackedRepositoryRepository",
]
