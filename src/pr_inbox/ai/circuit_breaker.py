"""Per-feature circuit breaker for AI enrichment calls.

A registry holds one breaker per feature key:

    CLOSED --(failure_threshold consecutive failures)--> OPEN
    OPEN --(cooldown elapsed, next check)--> HALF_OPEN (one probe admitted)
    HALF_OPEN --success--> CLOSED
    HALF_OPEN --failure--> OPEN (cooldown restarts)

The registry is constructed explicitly and passed to whoever needs it;
all state changes happen under a single lock so concurrent enrichment
calls observe consistent transitions.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from pr_inbox.config import CircuitBreakerConfig
from pr_inbox.logging import bind_feature

from .exceptions import CircuitOpenError

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class CircuitState(str, Enum):
    """Breaker state."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of one feature's breaker, for health reporting."""

    state: CircuitState
    consecutive_failures: int
    last_transition_at: datetime
    total_failures: int
    total_successes: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "last_transition_at": self.last_transition_at.isoformat(),
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
        }


@dataclass
class _Breaker:
    state: CircuitState
    last_transition_at: datetime
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    probe_in_flight: bool = False

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            state=self.state,
            consecutive_failures=self.consecutive_failures,
            last_transition_at=self.last_transition_at,
            total_failures=self.total_failures,
            total_successes=self.total_successes,
        )


class CircuitBreakerRegistry:
    """Health tracker for every enrichment feature.

    Usage:
        breakers = CircuitBreakerRegistry(settings.circuit_breaker)

        breakers.check("ai_summary")        # raises CircuitOpenError when open
        try:
            text = await runner(prompt, context)
        except Exception:
            breakers.record_failure("ai_summary")
            raise
        breakers.record_success("ai_summary")

    Or in one step:
        text = await breakers.call("ai_summary", lambda: runner(prompt, context))
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, _Breaker] = {}

    @property
    def failure_threshold(self) -> int:
        return self._config.failure_threshold

    @property
    def cooldown_seconds(self) -> float:
        return self._config.cooldown_seconds

    def _get(self, feature: str) -> _Breaker:
        breaker = self._breakers.get(feature)
        if breaker is None:
            breaker = _Breaker(state=CircuitState.CLOSED, last_transition_at=self._clock())
            self._breakers[feature] = breaker
        return breaker

    def _transition(self, feature: str, breaker: _Breaker, state: CircuitState) -> None:
        bind_feature(feature).info(
            "Circuit {} -> {} after {} consecutive failures",
            breaker.state.value,
            state.value,
            breaker.consecutive_failures,
        )
        breaker.state = state
        breaker.last_transition_at = self._clock()

    # -------------------------------------------------------------------------
    # Gate
    # -------------------------------------------------------------------------

    def check(self, feature: str) -> None:
        """Admit or short-circuit a call.

        Raises:
            CircuitOpenError: While the circuit is open, or while the single
                half-open probe is already in flight
        """
        with self._lock:
            breaker = self._get(feature)

            if breaker.state == CircuitState.OPEN:
                elapsed = (self._clock() - breaker.last_transition_at).total_seconds()
                remaining = self.cooldown_seconds - elapsed
                if remaining > 0:
                    raise CircuitOpenError(feature, remaining)
                self._transition(feature, breaker, CircuitState.HALF_OPEN)
                breaker.probe_in_flight = True
                return

            if breaker.state == CircuitState.HALF_OPEN:
                if breaker.probe_in_flight:
                    raise CircuitOpenError(feature, 0)
                breaker.probe_in_flight = True

    # -------------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------------

    def record_success(self, feature: str) -> None:
        """Record a successful call; closes a half-open circuit."""
        with self._lock:
            breaker = self._get(feature)
            breaker.total_successes += 1
            breaker.consecutive_failures = 0
            breaker.probe_in_flight = False
            if breaker.state != CircuitState.CLOSED:
                self._transition(feature, breaker, CircuitState.CLOSED)

    def record_failure(self, feature: str) -> None:
        """Record a failed call; may open the circuit."""
        with self._lock:
            breaker = self._get(feature)
            breaker.total_failures += 1
            breaker.consecutive_failures += 1

            if breaker.state == CircuitState.HALF_OPEN:
                breaker.probe_in_flight = False
                self._transition(feature, breaker, CircuitState.OPEN)
            elif (
                breaker.state == CircuitState.CLOSED
                and breaker.consecutive_failures >= self.failure_threshold
            ):
                self._transition(feature, breaker, CircuitState.OPEN)

    def release_probe(self, feature: str) -> None:
        """Give back a half-open probe slot without recording an outcome."""
        with self._lock:
            breaker = self._breakers.get(feature)
            if breaker is not None:
                breaker.probe_in_flight = False

    def reset(self, feature: str | None = None) -> None:
        """Forget one feature's breaker, or all of them."""
        with self._lock:
            if feature is None:
                self._breakers.clear()
            else:
                self._breakers.pop(feature, None)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def get_state(self, feature: str) -> BreakerSnapshot:
        with self._lock:
            return self._get(feature).snapshot()

    def get_all_breaker_states(self) -> dict[str, BreakerSnapshot]:
        """Snapshot of every feature seen so far."""
        with self._lock:
            return {feature: b.snapshot() for feature, b in self._breakers.items()}

    def open_circuits(self) -> list[str]:
        """Features whose circuit is currently OPEN."""
        with self._lock:
            return sorted(f for f, b in self._breakers.items() if b.state == CircuitState.OPEN)

    def is_healthy(self) -> bool:
        """True when no feature is OPEN."""
        return not self.open_circuits()

    # -------------------------------------------------------------------------
    # Convenience
    # -------------------------------------------------------------------------

    async def call(self, feature: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run a call through the breaker and record its outcome.

        Raises:
            CircuitOpenError: Without calling ``factory`` when short-circuited
        """
        self.check(feature)
        try:
            result = await factory()
        except asyncio.CancelledError:
            self.release_probe(feature)
            raise
        except Exception:
            self.record_failure(feature)
            raise
        self.record_success(feature)
        return result
