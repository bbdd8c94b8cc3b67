"""Schemas for branch promotion rules."""

from pydantic import BaseModel, ConfigDict, Field


class FlowRule(BaseModel):
    """Allowed targets for branches matching a pattern.

    ``pattern`` and ``allowed_targets`` entries are exact branch names or
    prefixes ending in a single ``*``. An empty ``allowed_targets`` leaves
    matching branches unconstrained.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(min_length=1)
    allowed_targets: tuple[str, ...] = ()
    phase: str | None = None


class FlowViolation(BaseModel):
    """A pull request targeting a branch its flow rule does not allow."""

    model_config = ConfigDict(frozen=True)

    head_ref: str
    base_ref: str
    expected_targets: list[str]
    message: str
