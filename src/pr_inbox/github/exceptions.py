"""GitHub client exceptions."""

from datetime import datetime


class GitHubClientError(Exception):
    """Base exception for GitHub client errors."""

    pass


class GitHubAuthenticationError(GitHubClientError):
    """Raised when authentication fails (401) or no token is configured."""

    pass


class GitHubPermissionError(GitHubClientError):
    """Raised when the token may not access a resource (403 without rate limit)."""

    pass


class GitHubNotFoundError(GitHubClientError):
    """Raised when a resource is not found (404)."""

    pass


class GitHubRetryableError(GitHubClientError):
    """Base class for transient errors.

    Subclasses are retried with backoff by ``with_retry`` and only recorded
    as sync errors once attempts run out.
    """

    pass


class GitHubRateLimitError(GitHubRetryableError):
    """Raised when rate limit is exceeded (403/429 with rate limit headers)."""

    def __init__(self, message: str, reset_at: datetime | None = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class GitHubServerError(GitHubRetryableError):
    """Raised on 5xx responses and network failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubTimeoutError(GitHubRetryableError):
    """Raised when a request or a bounded operation exceeds its time budget."""

    pass
