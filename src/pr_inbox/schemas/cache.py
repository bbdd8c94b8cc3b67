"""Cache keys and cached results for AI enrichment."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PullRequestKey(BaseModel):
    """Cache scope of a single pull request."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pull_request"] = "pull_request"
    pull_request_id: int = Field(gt=0)


class RepositoryKey(BaseModel):
    """Cache scope of a whole repository (aggregate features)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["repository"] = "repository"
    repository: str = Field(min_length=3, pattern=r"^[^/\s]+/[^/\s]+$")


CacheKey = Annotated[PullRequestKey | RepositoryKey, Field(discriminator="kind")]


class CachedResult(BaseModel):
    """A live cache entry."""

    model_config = ConfigDict(frozen=True)

    feature_type: str
    result_json: Any = None
    result_text: str | None = None
    generated_at: datetime
    expires_at: datetime


class FeatureType(str, Enum):
    """AI enrichment features."""

    SUMMARY = "ai_summary"
    RISK_ASSESSMENT = "ai_risk_assessment"
    LABEL_SUGGEST = "ai_label_suggest"
    REVIEWER_SUGGEST = "ai_reviewer_suggest"
    DIGEST = "ai_digest"
    DEPENDENCY_DETECTION = "ai_dependency_detection"
