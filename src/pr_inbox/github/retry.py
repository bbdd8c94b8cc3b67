"""Retry with exponential backoff for transient GitHub errors."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from pr_inbox.config import SyncConfig
from pr_inbox.logging import get_logger

from .exceptions import GitHubRateLimitError, GitHubRetryableError

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

RATE_LIMIT_BUFFER_SECONDS = 1.0


def backoff_delay(attempt: int, config: SyncConfig) -> float:
    """Delay before retry number ``attempt`` (1-based), capped."""
    return min(config.backoff_base_seconds * 2 ** (attempt - 1), config.backoff_max_seconds)


def retry_delay(error: GitHubRetryableError, attempt: int, config: SyncConfig) -> float:
    """How long to wait after ``error`` before the next attempt.

    Rate limits with a known reset wait until the reset (plus a small
    buffer); everything else backs off exponentially. Both are capped at
    ``backoff_max_seconds``.
    """
    if isinstance(error, GitHubRateLimitError) and error.reset_at is not None:
        wait_time = (error.reset_at - datetime.now(UTC)).total_seconds()
        if wait_time > 0:
            return min(wait_time + RATE_LIMIT_BUFFER_SECONDS, config.backoff_max_seconds)
    return backoff_delay(attempt, config)


async def with_retry(
    factory: Callable[[], Awaitable[T]],
    config: SyncConfig | None = None,
    *,
    label: str = "request",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Call ``factory`` until it succeeds or attempts run out.

    Only ``GitHubRetryableError`` (rate limit, 5xx, network, timeout) is
    retried; every other exception propagates on the first attempt.

    Args:
        factory: Zero-argument callable returning a fresh awaitable per attempt
        config: Attempt count and backoff bounds
        label: What is being retried, for logs
        sleep: Awaitable sleep (injectable for tests)

    Returns:
        The factory's result

    Raises:
        GitHubRetryableError: The last transient error once attempts run out
    """
    config = config or SyncConfig()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await factory()
        except GitHubRetryableError as e:
            if attempt >= config.max_attempts:
                logger.warning("{} failed after {} attempts: {}", label, attempt, e)
                raise
            delay = retry_delay(e, attempt, config)
            logger.info(
                "{} failed (attempt {}/{}): {}; retrying in {:.1f}s",
                label,
                attempt,
                config.max_attempts,
                e,
                delay,
            )
            await sleep(delay)
