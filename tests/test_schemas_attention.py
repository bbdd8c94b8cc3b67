"""Tests for stored attention state schemas."""

import pytest
from pydantic import ValidationError

from pr_inbox.schemas import AttentionRead, ScoreBreakdown
from tests.conftest import JAN_20


def stored(**overrides) -> dict:
    data = {
        "needs_attention": True,
        "attention_reason": "Review requested",
        "urgency_score": 48,
        "score_breakdown": {"review_request_boost": 25, "staleness_boost": 23, "final_score": 48},
        "flow_phase": "Development",
        "flow_violation": None,
        "risk_level": None,
        "risk_factors": None,
        "last_synced_at": JAN_20,
    }
    data.update(overrides)
    return data


class TestScoreBreakdown:
    """Tests for ScoreBreakdown."""

    def test_component_sum(self):
        breakdown = ScoreBreakdown(review_request_boost=25, draft_penalty=-20, final_score=5)

        assert breakdown.component_sum == 5
        assert breakdown.components()["draft_penalty"] == -20

    def test_penalties_must_not_be_positive(self):
        with pytest.raises(ValidationError):
            ScoreBreakdown(draft_penalty=20)

    @pytest.mark.parametrize("value", [None, "48", [25, 23], {"final_score": -1}])
    def test_from_stored_falls_back_to_zeros(self, value):
        assert ScoreBreakdown.from_stored(value) == ScoreBreakdown()

    def test_from_stored_ignores_unknown_keys(self):
        breakdown = ScoreBreakdown.from_stored(
            {"staleness_boost": 4, "legacy": 1, "final_score": 4}
        )
        assert breakdown.staleness_boost == 4


class TestAttentionRead:
    """Tests for AttentionRead."""

    def test_valid_row(self):
        read = AttentionRead.model_validate(stored())

        assert read.score_breakdown.review_request_boost == 25
        assert read.risk_factors == []

    def test_malformed_columns_are_neutral(self):
        read = AttentionRead.model_validate(
            stored(score_breakdown="oops", flow_violation=["x"], risk_factors=["a", 1, "a"])
        )

        assert read.score_breakdown == ScoreBreakdown()
        assert read.flow_violation is None
        assert read.risk_factors == ["a"]
