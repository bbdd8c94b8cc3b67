"""Schemas for attention scoring input and output."""

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pr_inbox.db.models import CiState, ReviewState

from .pr import coerce_string_list


class AttentionInput(BaseModel):
    """Flattened facts the urgency score is computed from."""

    model_config = ConfigDict(frozen=True)

    review_requested: bool = False
    assigned_to_me: bool = False
    ci_state: CiState = CiState.UNKNOWN
    is_draft: bool = False
    created_at: datetime
    updated_at: datetime
    is_mergeable: bool | None = None
    review_state: ReviewState = ReviewState.UNREVIEWED
    additions: int = 0
    deletions: int = 0
    comment_count: int = 0
    commit_count: int = 0
    mention_count: int = 0
    last_activity_by_viewer: bool = False


class ScoreBreakdown(BaseModel):
    """Signed urgency score components.

    Boosts are non-negative; draft_penalty and my_last_activity_penalty are
    stored as non-positive numbers so that final_score is always
    ``max(0, sum(components))``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    review_request_boost: int = 0
    assignee_boost: int = 0
    ci_penalty: int = 0
    staleness_boost: int = 0
    draft_penalty: int = Field(default=0, le=0)
    mention_boost: int = 0
    size_boost: int = 0
    activity_boost: int = 0
    commit_boost: int = 0
    my_last_activity_penalty: int = Field(default=0, le=0)
    final_score: int = Field(default=0, ge=0)

    COMPONENTS: ClassVar[tuple[str, ...]] = (
        "review_request_boost",
        "assignee_boost",
        "ci_penalty",
        "staleness_boost",
        "draft_penalty",
        "mention_boost",
        "size_boost",
        "activity_boost",
        "commit_boost",
        "my_last_activity_penalty",
    )

    def components(self) -> dict[str, int]:
        """Named components without the total."""
        return {name: getattr(self, name) for name in self.COMPONENTS}

    @property
    def component_sum(self) -> int:
        return sum(self.components().values())

    @classmethod
    def from_stored(cls, value: Any) -> "ScoreBreakdown":
        """Load a stored breakdown, falling back to all zeros when malformed."""
        if not isinstance(value, dict):
            return cls()
        try:
            return cls.model_validate(value)
        except ValidationError:
            return cls()


class AttentionResult(BaseModel):
    """Attention state derived for one pull request."""

    model_config = ConfigDict(frozen=True)

    needs_attention: bool
    attention_reason: str | None
    urgency_score: int
    score_breakdown: ScoreBreakdown


class AttentionRead(BaseModel):
    """Stored attention row; malformed JSON columns load as neutral values."""

    model_config = ConfigDict(from_attributes=True)

    needs_attention: bool
    attention_reason: str | None = None
    urgency_score: int
    score_breakdown: ScoreBreakdown
    flow_phase: str | None = None
    flow_violation: dict[str, Any] | None = None
    risk_level: str | None = None
    risk_factors: list[str] = Field(default_factory=list)
    last_synced_at: datetime

    @field_validator("score_breakdown", mode="before")
    @classmethod
    def _load_breakdown(cls, value: Any) -> ScoreBreakdown:
        if isinstance(value, ScoreBreakdown):
            return value
        return ScoreBreakdown.from_stored(value)

    @field_validator("flow_violation", mode="before")
    @classmethod
    def _load_violation(cls, value: Any) -> dict[str, Any] | None:
        return value if isinstance(value, dict) else None

    @field_validator("risk_factors", mode="before")
    @classmethod
    def _load_risk_factors(cls, value: Any) -> list[str]:
        return coerce_string_list(value)
