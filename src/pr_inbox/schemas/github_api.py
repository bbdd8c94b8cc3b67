"""Pydantic schemas for parsing GitHub API responses.

These schemas map directly to the GitHub REST API response structure and
keep only the fields the sync pipeline reads.
See: https://docs.github.com/en/rest/pulls/pulls
"""

from datetime import datetime

from pydantic import BaseModel, Field


class GitHubUser(BaseModel):
    """GitHub user object from API responses."""

    login: str = Field(description="GitHub username")
    id: int | None = Field(default=None, description="GitHub user ID")


class GitHubTeam(BaseModel):
    """Team entry in requested_teams."""

    slug: str = Field(description="Team slug")


class GitHubLabel(BaseModel):
    """GitHub label object from API responses."""

    name: str = Field(description="Label name")


class GitHubMilestone(BaseModel):
    """Milestone attached to a pull request."""

    title: str = Field(description="Milestone title")


class GitHubBranch(BaseModel):
    """Head or base branch of a pull request."""

    ref: str = Field(description="Branch name")
    sha: str = Field(description="Commit SHA at the tip of the branch")


class GitHubRepository(BaseModel):
    """Repository metadata from GET /repos/{owner}/{repo}."""

    id: int = Field(description="GitHub repository ID")
    full_name: str = Field(description="owner/name")
    default_branch: str | None = Field(default=None, description="Default branch")


class GitHubReview(BaseModel):
    """GitHub review object from reviews endpoint."""

    id: int = Field(description="Review ID")
    user: GitHubUser | None = Field(default=None, description="Reviewer (None for ghosts)")
    state: str = Field(description="APPROVED, CHANGES_REQUESTED, COMMENTED, PENDING, DISMISSED")
    submitted_at: datetime | None = Field(default=None, description="When review was submitted")


class GitHubIssueComment(BaseModel):
    """Conversation comment on a pull request."""

    id: int = Field(description="Comment ID")
    user: GitHubUser | None = Field(default=None, description="Comment author")
    created_at: datetime = Field(description="When the comment was posted")


class GitHubCombinedStatus(BaseModel):
    """Combined commit status for a ref."""

    state: str = Field(description="failure, pending or success")
    total_count: int = Field(default=0, description="Number of statuses")


class GitHubCheckRun(BaseModel):
    """Check run on a ref."""

    name: str = Field(default="", description="Check name")
    status: str = Field(description="queued, in_progress or completed")
    conclusion: str | None = Field(default=None, description="Outcome once completed")


class GitHubPullRequest(BaseModel):
    """GitHub Pull Request object from API.

    The list endpoint omits size and discussion counters, so those default
    to zero; GET /repos/{owner}/{repo}/pulls/{number} fills them in.
    """

    # Basic info
    id: int = Field(description="GitHub PR ID")
    number: int = Field(description="PR number")
    html_url: str = Field(description="GitHub PR URL")
    state: str = Field(description="PR state (open, closed)")
    title: str = Field(description="PR title")
    body: str | None = Field(default=None, description="PR description")
    draft: bool = Field(default=False, description="Whether the PR is a draft")

    # People
    user: GitHubUser | None = Field(default=None, description="PR author")
    assignees: list[GitHubUser] = Field(default_factory=list, description="Assignees")
    requested_reviewers: list[GitHubUser] = Field(
        default_factory=list, description="Requested reviewers"
    )
    requested_teams: list[GitHubTeam] = Field(
        default_factory=list, description="Requested reviewer teams"
    )

    # Branches
    head: GitHubBranch = Field(description="Source branch")
    base: GitHubBranch = Field(description="Target branch")

    # Dates
    created_at: datetime = Field(description="When PR was created")
    updated_at: datetime = Field(description="Last update timestamp")
    closed_at: datetime | None = Field(default=None, description="When PR was closed")
    merged_at: datetime | None = Field(default=None, description="When PR was merged")

    # Metadata
    labels: list[GitHubLabel] = Field(default_factory=list, description="PR labels")
    milestone: GitHubMilestone | None = Field(default=None, description="Milestone")
    mergeable: bool | None = Field(default=None, description="None while GitHub computes it")

    # Stats (detail endpoint only)
    commits: int = Field(default=0, description="Number of commits")
    additions: int = Field(default=0, description="Lines added")
    deletions: int = Field(default=0, description="Lines deleted")
    changed_files: int = Field(default=0, description="Number of files changed")
    comments: int = Field(default=0, description="Conversation comments")
    review_comments: int = Field(default=0, description="Inline review comments")

    @property
    def author_login(self) -> str:
        return self.user.login if self.user else "unknown"

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]

    @property
    def assignee_logins(self) -> list[str]:
        return [user.login for user in self.assignees]

    @property
    def reviewer_logins(self) -> list[str]:
        """Requested users plus requested teams as ``team:<slug>``."""
        users = [user.login for user in self.requested_reviewers]
        teams = [f"team:{team.slug}" for team in self.requested_teams]
        return users + teams

    @property
    def comment_count(self) -> int:
        return self.comments + self.review_comments
