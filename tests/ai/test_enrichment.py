"""Tests for EnrichmentService."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from pr_inbox.ai import (
    AiResultCache,
    CircuitBreakerRegistry,
    CircuitOpenError,
    CircuitState,
    EnrichmentError,
    EnrichmentService,
    EnrichmentTimeoutError,
    parse_risk_assessment,
)
from pr_inbox.audit import AuditLog
from pr_inbox.config import AiConfig, CircuitBreakerConfig
from pr_inbox.db.models import ActionResultStatus, ActionType
from pr_inbox.db.repositories import AttentionRepository
from pr_inbox.schemas.cache import FeatureType, PullRequestKey
from tests.conftest import JAN_20
from tests.factories import make_pull_request, make_repository


@pytest.fixture
async def pr_id(session_factory) -> int:
    async with session_factory() as session, session.begin():
        repo = make_repository(session)
        pr = make_pull_request(session, repo, number=7)
        await session.flush()
        await AttentionRepository(session).replace(
            pr.id,
            {
                "needs_attention": False,
                "attention_reason": None,
                "urgency_score": 3,
                "score_breakdown": {},
                "last_synced_at": JAN_20,
            },
        )
        return pr.id


@pytest.fixture
def runner() -> AsyncMock:
    return AsyncMock(return_value={"summary": "Adds login"})


@pytest.fixture
def breakers(clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=2), clock=clock)


@pytest.fixture
def audit(session_factory) -> AuditLog:
    return AuditLog(session_factory)


@pytest.fixture
def service(runner, session_factory, breakers, audit, clock) -> EnrichmentService:
    cache = AiResultCache(session_factory, clock=clock)
    return EnrichmentService(runner, cache, breakers, audit, AiConfig(timeout_seconds=0.5))


async def summarize(service: EnrichmentService, pr_id: int, **kwargs):
    return await service.enrich(
        FeatureType.SUMMARY,
        PullRequestKey(pull_request_id=pr_id),
        "Summarize this PR",
        {"title": "Add login"},
        repository="octo/widgets",
        pull_number=7,
        actor_login="alice",
        **kwargs,
    )


class TestEnrich:
    """Tests for the cache-then-call flow."""

    async def test_miss_calls_runner_and_caches(self, service, runner, pr_id, audit):
        outcome = await summarize(service, pr_id)

        runner.assert_awaited_once_with("Summarize this PR", {"title": "Add login"})
        assert outcome.from_cache is False
        assert outcome.result.result_json == {"summary": "Adds login"}

        entry = await audit.get_status(ActionType.AI_SUMMARY, "octo/widgets", 7)
        assert entry.result_status == ActionResultStatus.SUCCESS
        assert entry.actor_login == "alice"

    async def test_hit_skips_runner(self, service, runner, pr_id):
        await summarize(service, pr_id)

        outcome = await summarize(service, pr_id)

        assert runner.await_count == 1
        assert outcome.from_cache is True
        assert outcome.to_dict()["result"] == {"summary": "Adds login"}

    async def test_force_bypasses_cache(self, service, runner, pr_id):
        await summarize(service, pr_id)
        runner.return_value = {"summary": "Refreshed"}

        outcome = await summarize(service, pr_id, force=True)

        assert runner.await_count == 2
        assert outcome.result.result_json == {"summary": "Refreshed"}

    async def test_text_output_is_stored_as_text(self, service, runner, pr_id):
        runner.return_value = "Plain summary"

        outcome = await summarize(service, pr_id)

        assert outcome.result.result_text == "Plain summary"
        assert outcome.result.result_json is None

    async def test_accepts_feature_value_string(self, service, pr_id):
        outcome = await service.enrich(
            "ai_label_suggest",
            PullRequestKey(pull_request_id=pr_id),
            "Suggest labels",
            {},
            repository="octo/widgets",
            pull_number=7,
        )

        assert outcome.result.feature_type == "ai_label_suggest"

    async def test_unknown_feature_rejected(self, service, pr_id):
        with pytest.raises(ValueError):
            await service.enrich(
                "ai_poetry",
                PullRequestKey(pull_request_id=pr_id),
                "",
                {},
                repository="octo/widgets",
            )


class TestFailures:
    """Tests for runner failures and the breaker."""

    async def test_runner_error(self, service, runner, pr_id, breakers, audit):
        runner.side_effect = RuntimeError("model overloaded")

        with pytest.raises(EnrichmentError, match="model overloaded") as exc_info:
            await summarize(service, pr_id)

        assert exc_info.value.feature_type == "ai_summary"
        assert breakers.get_state("ai_summary").consecutive_failures == 1
        entry = await audit.get_status(ActionType.AI_SUMMARY, "octo/widgets", 7)
        assert entry.result_status == ActionResultStatus.FAILED
        assert entry.error_message == "model overloaded"

    async def test_timeout(self, service, runner, pr_id, breakers):
        async def slow(prompt, context):
            await asyncio.sleep(5)

        runner.side_effect = slow

        with pytest.raises(EnrichmentTimeoutError, match="timed out after 0.5s"):
            await summarize(service, pr_id)

        assert breakers.get_state("ai_summary").consecutive_failures == 1

    async def test_failure_is_not_cached(self, service, runner, pr_id):
        runner.side_effect = RuntimeError("boom")
        with pytest.raises(EnrichmentError):
            await summarize(service, pr_id)

        runner.side_effect = None
        outcome = await summarize(service, pr_id)

        assert outcome.from_cache is False

    async def test_open_circuit_short_circuits(self, service, runner, pr_id, audit):
        runner.side_effect = RuntimeError("down")
        for _ in range(2):
            with pytest.raises(EnrichmentError):
                await summarize(service, pr_id)
        runner.reset_mock()

        with pytest.raises(CircuitOpenError):
            await summarize(service, pr_id)

        runner.assert_not_awaited()
        entry = await audit.get_status(ActionType.AI_SUMMARY, "octo/widgets", 7)
        assert entry.error_message == "down"

    async def test_cache_hit_served_while_circuit_open(self, service, runner, pr_id):
        await summarize(service, pr_id)
        runner.side_effect = RuntimeError("down")
        for _ in range(2):
            with pytest.raises(EnrichmentError):
                await summarize(service, pr_id, force=True)

        outcome = await summarize(service, pr_id)

        assert outcome.from_cache is True

    async def test_health(self, service, runner, pr_id):
        runner.side_effect = RuntimeError("down")
        for _ in range(2):
            with pytest.raises(EnrichmentError):
                await summarize(service, pr_id)

        health = service.health()

        assert health["healthy"] is False
        assert health["open_circuits"] == ["ai_summary"]
        assert health["breakers"]["ai_summary"]["state"] == "OPEN"

    async def test_audit_failure_frees_half_open_slot(
        self, service, runner, pr_id, breakers, audit, clock, monkeypatch
    ):
        runner.side_effect = RuntimeError("down")
        for _ in range(2):
            with pytest.raises(EnrichmentError):
                await summarize(service, pr_id)
        clock.advance(seconds=61)
        runner.side_effect = None
        runner.reset_mock()

        monkeypatch.setattr(audit, "start", AsyncMock(side_effect=RuntimeError("store down")))
        with pytest.raises(RuntimeError, match="store down"):
            await summarize(service, pr_id)
        monkeypatch.undo()

        outcome = await summarize(service, pr_id)

        assert outcome.from_cache is False
        runner.assert_awaited_once()
        assert breakers.get_state("ai_summary").state == CircuitState.CLOSED


class TestAssessRisk:
    """Tests for risk enrichment."""

    async def test_writes_risk_onto_attention_row(self, service, runner, pr_id, session_factory):
        runner.return_value = {"riskLevel": "High", "factors": ["touches auth", 3]}

        await service.assess_risk(
            session_factory, pr_id, "Assess", {}, repository="octo/widgets", pull_number=7
        )

        async with session_factory() as session:
            row = await AttentionRepository(session).get_for_pull_request(pr_id)
        assert row.risk_level == "high"
        assert row.risk_factors == ["touches auth"]
        assert row.urgency_score == 3

    async def test_unrecognized_payload_leaves_row(self, service, runner, pr_id, session_factory):
        runner.return_value = "looks fine"

        outcome = await service.assess_risk(
            session_factory, pr_id, "Assess", {}, repository="octo/widgets", pull_number=7
        )

        assert outcome.result.result_text == "looks fine"
        async with session_factory() as session:
            row = await AttentionRepository(session).get_for_pull_request(pr_id)
        assert row.risk_level is None


class TestParseRiskAssessment:
    """Tests for parse_risk_assessment."""

    def test_snake_case(self):
        payload = {"risk_level": "medium", "risk_factors": ["large diff"]}

        assert parse_risk_assessment(payload) == ("medium", ["large diff"])

    def test_missing_factors(self):
        assert parse_risk_assessment({"risk_level": "low"}) == ("low", [])

    @pytest.mark.parametrize(
        "payload",
        [None, "high", ["high"], {"risk_level": "extreme"}, {"risk_level": 3}, {}],
    )
    def test_rejects(self, payload):
        assert parse_risk_assessment(payload) is None
