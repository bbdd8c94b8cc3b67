"""GitHub API client module.

This module provides:
- GitHubClient: Async GitHub API client
- Exceptions: GitHubClientError hierarchy with a retryable branch
- with_retry: Exponential backoff for transient errors
- Sync: SyncOrchestrator, PullRequestReconciler, PullRequestFetcher
"""

from .client import GitHubClient
from .exceptions import (
    GitHubAuthenticationError,
    GitHubClientError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
    GitHubRetryableError,
    GitHubServerError,
    GitHubTimeoutError,
)
from .retry import backoff_delay, retry_delay, with_retry
from .sync import (
    PullRequestFetcher,
    PullRequestReconciler,
    ReconcileResult,
    RepositoryNotTrackedError,
    SyncOrchestrator,
    SyncRunResult,
)

__all__ = [
    # Client
    "GitHubClient",
    # Exceptions
    "GitHubAuthenticationError",
    "GitHubClientError",
    "GitHubNotFoundError",
    "GitHubPermissionError",
    "GitHubRateLimitError",
    "GitHubRetryableError",
    "GitHubServerError",
    "GitHubTimeoutError",
    # Retry
    "backoff_delay",
    "retry_delay",
    "with_retry",
    # Sync
    "PullRequestFetcher",
    "PullRequestReconciler",
    "ReconcileResult",
    "RepositoryNotTrackedError",
    "SyncOrchestrator",
    "SyncRunResult",
]
