"""Bounded-concurrency batch execution.

Runs one coroutine per item with at most ``max_concurrency`` in flight and
collects successes and failures without letting one failure cancel the rest.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pr_inbox.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchResult(Generic[T]):
    """Result of a batch operation."""

    succeeded: list[T] = field(default_factory=list)
    failed: list[tuple[int, Exception]] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        """Total number of items processed."""
        return len(self.succeeded) + len(self.failed)

    @property
    def success_count(self) -> int:
        """Number of successful items."""
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        """Number of failed items."""
        return len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        """Whether all items succeeded."""
        return len(self.failed) == 0


class BatchExecutor(Generic[T, R]):
    """Processes items concurrently behind a semaphore.

    Usage:
        executor = BatchExecutor(max_concurrency=5)

        async def reconcile(number: int) -> ReconcileResult:
            ...

        result = await executor.execute([1, 2, 3], reconcile)
        for index, error in result.failed:
            print(index, error)
    """

    def __init__(self, max_concurrency: int = 5) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_concurrency = max_concurrency

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def execute(
        self,
        items: Sequence[T],
        processor: Callable[[T], Awaitable[R]],
    ) -> BatchResult[R]:
        """Execute ``processor`` on every item.

        Args:
            items: Sequence of items to process
            processor: Async function to process each item

        Returns:
            BatchResult with results in item order and (index, exception)
            pairs for items that raised
        """
        result: BatchResult[R] = BatchResult()
        if not items:
            return result

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def run(item: T) -> R:
            async with semaphore:
                return await processor(item)

        outcomes = await asyncio.gather(*(run(item) for item in items), return_exceptions=True)

        for i, res in enumerate(outcomes):
            if isinstance(res, asyncio.CancelledError):
                raise res
            if isinstance(res, Exception):
                result.failed.append((i, res))
            elif isinstance(res, BaseException):
                raise res
            else:
                result.succeeded.append(res)

        return result
