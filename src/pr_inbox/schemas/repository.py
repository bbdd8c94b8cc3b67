"""Schemas for repositories and pull request references."""

import re

from pydantic import Field, field_validator

from .base import SchemaBase

_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def parse_repo_string(value: str) -> tuple[str, str]:
    """Split an ``owner/name`` string.

    Raises:
        ValueError: If the value is not in owner/name form
    """
    value = value.strip()
    if not _REPO_PATTERN.match(value):
        raise ValueError(f"Repository must be in owner/name format, got '{value}'")
    owner, name = value.split("/", 1)
    return owner, name


class PullRequestRef(SchemaBase):
    """Reference to one pull request of a repository."""

    full_name: str = Field(description="Repository in owner/name form")
    number: int = Field(gt=0, description="Pull request number")

    @field_validator("full_name")
    @classmethod
    def _check_full_name(cls, value: str) -> str:
        parse_repo_string(value)
        return value

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[1]

    def __str__(self) -> str:
        return f"{self.full_name}#{self.number}"


class TrackedRepositoryRead(SchemaBase):
    """Schema for reading a user's tracked repository."""

    user_id: str
    full_name: str
    repository_id: int | None
