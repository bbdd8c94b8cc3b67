"""Cache-then-call-then-cache wrapper around the AI runner.

The runner is an opaque ``async (prompt, context) -> str | dict | list``.
This service only decides whether to call it (cache, circuit breaker),
bounds how long it may take, and records what happened.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pr_inbox.audit import AuditLog
from pr_inbox.config import AiConfig
from pr_inbox.db.models import ActionResultStatus, ActionType
from pr_inbox.db.repositories import AttentionRepository
from pr_inbox.logging import bind_feature
from pr_inbox.schemas.cache import CachedResult, CacheKey, FeatureType, PullRequestKey

from .cache import AiResultCache
from .circuit_breaker import CircuitBreakerRegistry
from .exceptions import EnrichmentError, EnrichmentTimeoutError

AiRunner = Callable[[str, dict[str, Any]], Awaitable[str | dict[str, Any] | list[Any]]]

_ACTION_TYPES: dict[str, ActionType] = {
    FeatureType.SUMMARY.value: ActionType.AI_SUMMARY,
    FeatureType.RISK_ASSESSMENT.value: ActionType.AI_RISK_ASSESSMENT,
    FeatureType.LABEL_SUGGEST.value: ActionType.AI_LABEL_SUGGEST,
    FeatureType.REVIEWER_SUGGEST.value: ActionType.AI_REVIEWER_SUGGEST,
    FeatureType.DIGEST.value: ActionType.AI_DIGEST,
    FeatureType.DEPENDENCY_DETECTION.value: ActionType.AI_DEPENDENCY_DETECTION,
}

RISK_LEVELS = ("low", "medium", "high")


@dataclass
class EnrichmentResult:
    """Outcome of one enrichment request."""

    result: CachedResult
    """The (possibly cached) result."""

    from_cache: bool = False
    """True if no runner call was made."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "feature_type": self.result.feature_type,
            "from_cache": self.from_cache,
            "result": self.result.result_json,
            "result_text": self.result.result_text,
            "generated_at": self.result.generated_at.isoformat(),
            "expires_at": self.result.expires_at.isoformat(),
        }


def _split_output(output: str | dict[str, Any] | list[Any]) -> tuple[Any, str | None]:
    if isinstance(output, str):
        return None, output
    return output, None


class EnrichmentService:
    """Guards AI runner calls with the result cache and the circuit breaker.

    Usage:
        service = EnrichmentService(runner, cache, breakers, audit)
        outcome = await service.enrich(
            FeatureType.SUMMARY,
            PullRequestKey(pull_request_id=pr.id),
            prompt,
            {"title": pr.title},
            repository="octo/widgets",
            pull_number=pr.number,
        )
    """

    def __init__(
        self,
        runner: AiRunner,
        cache: AiResultCache,
        breakers: CircuitBreakerRegistry,
        audit: AuditLog,
        config: AiConfig | None = None,
    ) -> None:
        self._runner = runner
        self._cache = cache
        self._breakers = breakers
        self._audit = audit
        self._config = config or AiConfig()

    async def enrich(
        self,
        feature_type: FeatureType | str,
        key: CacheKey,
        prompt: str,
        context: dict[str, Any],
        *,
        repository: str,
        pull_number: int | None = None,
        actor_login: str | None = None,
        ttl_hours: float | None = None,
        force: bool = False,
    ) -> EnrichmentResult:
        """Return a cached result or call the runner for a fresh one.

        Args:
            feature_type: Enrichment feature
            key: Cache scope
            prompt: Prompt for the runner
            context: Structured context for the runner
            repository: Repository the request is about (for auditing)
            pull_number: Pull request number, when PR-scoped
            actor_login: User who asked for it
            ttl_hours: Override of the feature's cache TTL
            force: Skip the cache lookup

        Returns:
            EnrichmentResult

        Raises:
            CircuitOpenError: The feature's circuit is open; nothing was called
            EnrichmentTimeoutError: The runner exceeded its time budget
            EnrichmentError: The runner failed
        """
        feature = FeatureType(feature_type).value
        log = bind_feature(feature)

        if not force:
            cached = await self._cache.get_cached_result(feature, key)
            if cached is not None:
                log.debug("Cache hit for {}", key)
                return EnrichmentResult(result=cached, from_cache=True)

        self._breakers.check(feature)

        action_type = _ACTION_TYPES[feature]
        try:
            entry_id = await self._audit.start(
                action_type,
                repository,
                pull_number=pull_number,
                actor_login=actor_login,
            )
        except BaseException:
            # No runner outcome to record; free the half-open slot
            self._breakers.release_probe(feature)
            raise

        try:
            output = await asyncio.wait_for(
                self._runner(prompt, context), timeout=self._config.timeout_seconds
            )
        except asyncio.CancelledError:
            self._breakers.release_probe(feature)
            await self._audit.complete(
                entry_id, ActionResultStatus.FAILED, error_message="Cancelled"
            )
            raise
        except TimeoutError as e:
            self._breakers.record_failure(feature)
            message = f"{feature} timed out after {self._config.timeout_seconds:g}s"
            await self._audit.complete(entry_id, ActionResultStatus.FAILED, error_message=message)
            log.warning(message)
            raise EnrichmentTimeoutError(message, feature) from e
        except Exception as e:
            self._breakers.record_failure(feature)
            await self._audit.complete(entry_id, ActionResultStatus.FAILED, error_message=str(e))
            log.warning("Runner failed: {}", e)
            raise EnrichmentError(f"{feature} failed: {e}", feature) from e

        self._breakers.record_success(feature)

        result_json, result_text = _split_output(output)
        cached = await self._cache.set_cached_result(
            feature, key, result_json, result_text=result_text, ttl_hours=ttl_hours
        )
        await self._audit.complete(entry_id, ActionResultStatus.SUCCESS)
        log.info("Enrichment for {} stored until {}", key, cached.expires_at.isoformat())
        return EnrichmentResult(result=cached)

    async def assess_risk(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pull_request_id: int,
        prompt: str,
        context: dict[str, Any],
        *,
        repository: str,
        pull_number: int,
        actor_login: str | None = None,
        force: bool = False,
    ) -> EnrichmentResult:
        """Run risk assessment and copy its verdict onto the attention row.

        The runner is expected to return ``{"risk_level": "low|medium|high",
        "risk_factors": [...]}``; anything else is stored in the cache but
        leaves the attention row untouched.
        """
        outcome = await self.enrich(
            FeatureType.RISK_ASSESSMENT,
            PullRequestKey(pull_request_id=pull_request_id),
            prompt,
            context,
            repository=repository,
            pull_number=pull_number,
            actor_login=actor_login,
            force=force,
        )

        parsed = parse_risk_assessment(outcome.result.result_json)
        if parsed is None:
            bind_feature(FeatureType.RISK_ASSESSMENT.value).warning(
                "Unrecognized risk assessment payload for PR {}", pull_request_id
            )
            return outcome

        level, factors = parsed
        async with session_factory() as session, session.begin():
            await AttentionRepository(session).set_risk(pull_request_id, level, factors)
        return outcome

    def health(self) -> dict[str, Any]:
        """Breaker health report."""
        states = self._breakers.get_all_breaker_states()
        return {
            "healthy": self._breakers.is_healthy(),
            "open_circuits": self._breakers.open_circuits(),
            "breakers": {feature: s.to_dict() for feature, s in states.items()},
        }


def parse_risk_assessment(payload: Any) -> tuple[str, list[str]] | None:
    """Extract (risk_level, risk_factors) from a runner payload."""
    if not isinstance(payload, dict):
        return None
    level = payload.get("risk_level", payload.get("riskLevel"))
    if not isinstance(level, str) or level.lower() not in RISK_LEVELS:
        return None
    raw_factors = payload.get("risk_factors", payload.get("factors", []))
    factors = [f for f in raw_factors if isinstance(f, str)] if isinstance(raw_factors, list) else []
    return level.lower(), factors
