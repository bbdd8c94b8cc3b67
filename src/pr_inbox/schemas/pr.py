"""Normalized pull request snapshot passed from fetch to reconcile."""

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from pr_inbox.db.models import CiState, PRState, ReviewState

from .base import SchemaBase
from .github_api import GitHubPullRequest


def coerce_string_list(value: Any) -> list[str]:
    """Normalize a stored or remote string array.

    Anything that is not a list becomes an empty list, non-string items
    are dropped, and duplicates collapse (order of first occurrence kept).
    """
    if not isinstance(value, list | tuple):
        return []
    seen: dict[str, None] = {}
    for item in value:
        if isinstance(item, str) and item:
            seen.setdefault(item, None)
    return list(seen)


class PullRequestSnapshot(SchemaBase):
    """Every mutable fact about one remote pull request at fetch time.

    Two snapshots built from the same remote state compare equal, which is
    what makes reconciliation idempotent.
    """

    number: int = Field(gt=0)
    github_id: int | None = None
    url: str
    author_login: str

    title: str
    body: str | None = None
    state: PRState = PRState.OPEN
    draft: bool = False
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    requested_reviewers: list[str] = Field(default_factory=list)
    milestone: str | None = None
    head_ref: str
    base_ref: str
    mergeable: bool | None = None

    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    changed_files: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    commit_count: int = Field(default=0, ge=0)

    ci_state: CiState = CiState.UNKNOWN
    review_state: ReviewState = ReviewState.UNREVIEWED
    last_activity_by_viewer: bool = False

    github_created_at: datetime
    github_updated_at: datetime
    last_activity_at: datetime

    @field_validator("labels", "assignees", "requested_reviewers", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> list[str]:
        return coerce_string_list(value)

    @classmethod
    def from_github(
        cls,
        pr: GitHubPullRequest,
        *,
        ci_state: CiState,
        review_state: ReviewState,
        last_activity_by_viewer: bool,
    ) -> "PullRequestSnapshot":
        """Build a snapshot from a detailed GitHub pull request.

        Args:
            pr: Pull request from the detail endpoint
            ci_state: Resolved CI state of the head commit
            review_state: Resolved review state
            last_activity_by_viewer: Whether the viewer acted last

        Returns:
            PullRequestSnapshot
        """
        if pr.merged_at is not None:
            state = PRState.MERGED
        elif pr.state == "closed":
            state = PRState.CLOSED
        else:
            state = PRState.OPEN

        return cls(
            number=pr.number,
            github_id=pr.id,
            url=pr.html_url,
            author_login=pr.author_login,
            title=pr.title,
            body=pr.body,
            state=state,
            draft=pr.draft,
            labels=pr.label_names,
            assignees=pr.assignee_logins,
            requested_reviewers=pr.reviewer_logins,
            milestone=pr.milestone.title if pr.milestone else None,
            head_ref=pr.head.ref,
            base_ref=pr.base.ref,
            mergeable=pr.mergeable,
            additions=pr.additions,
            deletions=pr.deletions,
            changed_files=pr.changed_files,
            comment_count=pr.comment_count,
            commit_count=pr.commits,
            ci_state=ci_state,
            review_state=review_state,
            last_activity_by_viewer=last_activity_by_viewer,
            github_created_at=pr.created_at,
            github_updated_at=pr.updated_at,
            last_activity_at=pr.updated_at,
        )

    def to_row(self) -> dict[str, Any]:
        """Column values for the pull_requests table, minus identity columns."""
        return self.model_dump(exclude={"number"})


class PullRequestRead(SchemaBase):
    """Schema for reading a stored pull request."""

    id: int
    repository_id: int
    number: int
    url: str
    author_login: str
    title: str
    state: PRState
    draft: bool
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    requested_reviewers: list[str] = Field(default_factory=list)
    head_ref: str
    base_ref: str
    ci_state: CiState
    review_state: ReviewState
    github_updated_at: datetime

    @field_validator("labels", "assignees", "requested_reviewers", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> list[str]:
        return coerce_string_list(value)
