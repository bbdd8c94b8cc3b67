"""Build normalized pull request snapshots from GitHub.

Only the detail fetch is authoritative; reviews, CI and the latest comment
degrade to neutral values when their lookups fail.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from pr_inbox.config import SyncConfig
from pr_inbox.db.models import CiState, ReviewState
from pr_inbox.logging import bind_pr
from pr_inbox.schemas.github_api import (
    GitHubCheckRun,
    GitHubCombinedStatus,
    GitHubPullRequest,
    GitHubReview,
)
from pr_inbox.schemas.pr import PullRequestSnapshot

from ..client import GitHubClient
from ..exceptions import GitHubClientError
from ..retry import with_retry

_REVIEW_STATES = {
    "APPROVED": ReviewState.APPROVED,
    "CHANGES_REQUESTED": ReviewState.CHANGES_REQUESTED,
    "COMMENTED": ReviewState.COMMENTED,
}

_FAILED_CONCLUSIONS = frozenset({"failure", "timed_out", "cancelled"})
_PENDING_STATUSES = frozenset({"queued", "in_progress"})

_EPOCH = datetime.fromtimestamp(0, tz=UTC)


def _submitted(review: GitHubReview) -> datetime:
    return review.submitted_at or _EPOCH


def latest_review(reviews: list[GitHubReview]) -> GitHubReview | None:
    """Most recently submitted non-pending review (first one wins ties)."""
    latest: GitHubReview | None = None
    for review in reviews:
        if review.state == "PENDING":
            continue
        if latest is None or _submitted(review) > _submitted(latest):
            latest = review
    return latest


def resolve_review_state(
    pr: GitHubPullRequest,
    reviews: list[GitHubReview],
) -> ReviewState:
    """Draft, then outstanding review requests, then the latest review's verdict."""
    if pr.draft:
        return ReviewState.DRAFT
    if pr.reviewer_logins:
        return ReviewState.REVIEW_REQUESTED
    latest = latest_review(reviews)
    if latest is None:
        return ReviewState.UNREVIEWED
    return _REVIEW_STATES.get(latest.state, ReviewState.UNREVIEWED)


def _status_state(status: GitHubCombinedStatus) -> CiState:
    if status.total_count <= 0:
        return CiState.UNKNOWN
    if status.state in ("failure", "error"):
        return CiState.FAILURE
    if status.state == "pending":
        return CiState.PENDING
    if status.state == "success":
        return CiState.SUCCESS
    return CiState.UNKNOWN


def _checks_state(runs: list[GitHubCheckRun]) -> CiState:
    if not runs:
        return CiState.UNKNOWN
    if any(run.conclusion in _FAILED_CONCLUSIONS for run in runs):
        return CiState.FAILURE
    if any(run.status in _PENDING_STATUSES for run in runs):
        return CiState.PENDING
    return CiState.SUCCESS


def combine_ci_states(status: GitHubCombinedStatus, runs: list[GitHubCheckRun]) -> CiState:
    """Merge commit statuses and check runs; the worse signal wins."""
    states = {_status_state(status), _checks_state(runs)}
    for state in (CiState.FAILURE, CiState.PENDING, CiState.SUCCESS):
        if state in states:
            return state
    return CiState.UNKNOWN


class PullRequestFetcher:
    """Fetches everything needed to reconcile one pull request.

    Usage:
        fetcher = PullRequestFetcher(client, settings.sync)
        snapshot = await fetcher.fetch("octo", "widgets", 42, viewer_login="alice")
    """

    def __init__(self, client: GitHubClient, config: SyncConfig | None = None) -> None:
        self._client = client
        self._config = config or SyncConfig()

    async def fetch(
        self,
        owner: str,
        repo: str,
        number: int,
        *,
        viewer_login: str | None = None,
    ) -> PullRequestSnapshot:
        """Fetch one pull request and resolve its derived states.

        Args:
            owner: Repository owner
            repo: Repository name
            number: PR number
            viewer_login: Login whose last activity is checked

        Returns:
            PullRequestSnapshot

        Raises:
            GitHubClientError: If the PR itself can't be fetched (after retries)
        """
        pr = await with_retry(
            lambda: self._client.get_pull_request(owner, repo, number),
            self._config,
            label=f"GET {owner}/{repo}#{number}",
        )
        return await self.build_snapshot(owner, repo, pr, viewer_login=viewer_login)

    async def build_snapshot(
        self,
        owner: str,
        repo: str,
        pr: GitHubPullRequest,
        *,
        viewer_login: str | None = None,
    ) -> PullRequestSnapshot:
        """Resolve review, CI and viewer activity for an already-fetched PR."""
        reviews: list[GitHubReview] = []
        if not pr.draft and not pr.reviewer_logins:
            reviews = await self._fetch_reviews(owner, repo, pr.number)

        ci_state = await self.resolve_ci_state(owner, repo, pr)
        last_activity = await self.resolve_last_activity_by_viewer(
            owner, repo, pr, reviews, viewer_login
        )

        return PullRequestSnapshot.from_github(
            pr,
            ci_state=ci_state,
            review_state=resolve_review_state(pr, reviews),
            last_activity_by_viewer=last_activity,
        )

    async def _fetch_reviews(self, owner: str, repo: str, number: int) -> list[GitHubReview]:
        try:
            return await self._client.get_pull_request_reviews(owner, repo, number)
        except GitHubClientError as e:
            bind_pr(f"{owner}/{repo}", number).warning(
                "Review lookup failed, treating as unreviewed: {}", e
            )
            return []

    async def resolve_ci_state(self, owner: str, repo: str, pr: GitHubPullRequest) -> CiState:
        """CI state of the head commit; UNKNOWN when it can't be determined."""
        log = bind_pr(f"{owner}/{repo}", pr.number)
        try:
            status, runs = await asyncio.gather(
                self._client.get_combined_status(owner, repo, pr.head.sha),
                self._client.list_check_runs(owner, repo, pr.head.sha),
            )
        except GitHubClientError as e:
            log.warning("CI lookup failed for {}: {}", pr.head.sha[:8], e)
            return CiState.UNKNOWN

        state = combine_ci_states(status, runs)
        if state == CiState.UNKNOWN:
            log.warning("No statuses or check runs found for {}", pr.head.sha[:8])
        return state

    async def resolve_last_activity_by_viewer(
        self,
        owner: str,
        repo: str,
        pr: GitHubPullRequest,
        reviews: list[GitHubReview],
        viewer_login: str | None,
    ) -> bool:
        """Whether the newest review or conversation comment is the viewer's.

        A comment wins ties with a review. Without a viewer, or without any
        review or comment, the answer is False.
        """
        if not viewer_login:
            return False
        viewer = viewer_login.casefold()

        review_at: datetime | None = None
        review_by_viewer = False
        latest = latest_review(reviews)
        if latest is not None and latest.submitted_at is not None:
            review_at = latest.submitted_at
            review_by_viewer = bool(latest.user) and latest.user.login.casefold() == viewer

        comment_at: datetime | None = None
        comment_by_viewer = False
        try:
            comment = await self._client.get_latest_issue_comment(
                owner, repo, pr.number, comment_count=pr.comments
            )
        except GitHubClientError as e:
            bind_pr(f"{owner}/{repo}", pr.number).debug("Comment lookup failed: {}", e)
            comment = None
        if comment is not None:
            comment_at = comment.created_at
            comment_by_viewer = bool(comment.user) and comment.user.login.casefold() == viewer

        if review_at is None and comment_at is None:
            return False
        if comment_at is not None and (review_at is None or comment_at >= review_at):
            return comment_by_viewer
        return review_by_viewer
