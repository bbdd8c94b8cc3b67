"""PR sync pipeline: snapshot fetching, reconciliation and orchestration."""

from .batch import BatchExecutor, BatchResult
from .locks import KeyedLock
from .orchestrator import RepositoryNotTrackedError, SyncOrchestrator
from .reconciler import PullRequestReconciler
from .results import ReconcileResult, RepoSyncResult, SyncIssue, SyncRunResult
from .snapshot import PullRequestFetcher, combine_ci_states, latest_review, resolve_review_state

__all__ = [
    # Concurrency
    "BatchExecutor",
    "BatchResult",
    "KeyedLock",
    # Orchestration
    "RepositoryNotTrackedError",
    "SyncOrchestrator",
    # Reconciliation
    "PullRequestReconciler",
    # Results
    "ReconcileResult",
    "RepoSyncResult",
    "SyncIssue",
    "SyncRunResult",
    # Snapshots
    "PullRequestFetcher",
    "combine_ci_states",
    "latest_review",
    "resolve_review_state",
]
