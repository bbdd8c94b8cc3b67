"""Tests for retry with backoff."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from pr_inbox.config import SyncConfig
from pr_inbox.github.exceptions import (
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
)
from pr_inbox.github.retry import backoff_delay, retry_delay, with_retry


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(max_attempts=3, backoff_base_seconds=1.0, backoff_max_seconds=10.0)


class TestBackoff:
    """Tests for delay calculation."""

    @pytest.mark.parametrize(("attempt", "expected"), [(1, 1.0), (2, 2.0), (3, 4.0), (5, 10.0)])
    def test_exponential_and_capped(self, config, attempt, expected):
        assert backoff_delay(attempt, config) == expected

    def test_rate_limit_waits_for_reset(self, config):
        error = GitHubRateLimitError("limited", reset_at=datetime.now(UTC) + timedelta(seconds=5))

        delay = retry_delay(error, 1, config)

        assert 5.0 < delay <= 6.0

    def test_rate_limit_wait_is_capped(self, config):
        error = GitHubRateLimitError("limited", reset_at=datetime.now(UTC) + timedelta(hours=1))

        assert retry_delay(error, 1, config) == 10.0

    def test_rate_limit_in_past_uses_backoff(self, config):
        error = GitHubRateLimitError("limited", reset_at=datetime.now(UTC) - timedelta(seconds=5))

        assert retry_delay(error, 2, config) == 2.0

    def test_server_error_uses_backoff(self, config):
        assert retry_delay(GitHubServerError("502", 502), 3, config) == 4.0


class TestWithRetry:
    """Tests for with_retry."""

    async def test_success_first_try(self, config):
        factory = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await with_retry(factory, config, sleep=sleep) == "ok"
        sleep.assert_not_awaited()

    async def test_retries_transient_errors(self, config):
        factory = AsyncMock(side_effect=[GitHubServerError("502"), GitHubServerError("503"), "ok"])
        sleep = AsyncMock()

        assert await with_retry(factory, config, sleep=sleep) == "ok"
        assert factory.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_gives_up_after_max_attempts(self, config):
        factory = AsyncMock(side_effect=GitHubServerError("down"))
        sleep = AsyncMock()

        with pytest.raises(GitHubServerError, match="down"):
            await with_retry(factory, config, sleep=sleep)

        assert factory.await_count == 3
        assert sleep.await_count == 2

    async def test_permanent_errors_not_retried(self, config):
        factory = AsyncMock(side_effect=GitHubNotFoundError("gone"))
        sleep = AsyncMock()

        with pytest.raises(GitHubNotFoundError):
            await with_retry(factory, config, sleep=sleep)

        assert factory.await_count == 1
        sleep.assert_not_awaited()

    async def test_single_attempt_config(self):
        factory = AsyncMock(side_effect=GitHubServerError("down"))

        with pytest.raises(GitHubServerError):
            await with_retry(factory, SyncConfig(max_attempts=1), sleep=AsyncMock())

        assert factory.await_count == 1
