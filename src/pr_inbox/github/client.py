"""Async GitHub API client wrapper using githubkit.

This module provides a typed async interface to the GitHub REST API for the
pull request, review, comment and CI data the sync pipeline reads.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from githubkit import GitHub
from githubkit.exception import RequestError, RequestFailed, RequestTimeout
from pydantic import ValidationError

from pr_inbox.config import get_settings
from pr_inbox.logging import get_logger
from pr_inbox.schemas.github_api import (
    GitHubCheckRun,
    GitHubCombinedStatus,
    GitHubIssueComment,
    GitHubPullRequest,
    GitHubRepository,
    GitHubReview,
)

from .exceptions import (
    GitHubAuthenticationError,
    GitHubClientError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
)

logger = get_logger(__name__)

# Transport-level failures (no HTTP response)
TRANSPORT_ERRORS = (RequestError, RequestTimeout)
API_ERRORS = (RequestFailed, *TRANSPORT_ERRORS)

PRState = Literal["open", "closed", "all"]
PRSort = Literal["created", "updated", "popularity", "long-running"]


class GitHubClient:
    """Async GitHub API client for PR sync.

    Usage:
        async with GitHubClient() as client:
            page = await client.list_pull_requests_page("octo", "widgets", 1)
            for pr in page:
                print(pr.title)

    Or without context manager:
        client = GitHubClient()
        viewer = await client.get_viewer_login()
        await client.close()
    """

    def __init__(self, token: str | None = None) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub PAT. If not provided, uses GITHUB_TOKEN from settings.

        Raises:
            GitHubAuthenticationError: If no token is available.
        """
        self._token = token or get_settings().github_token
        if not self._token:
            raise GitHubAuthenticationError(
                "GitHub token required. Set GITHUB_TOKEN environment variable."
            )
        self._client: GitHub[Any] | None = None

    @property
    def _github(self) -> GitHub[Any]:
        """Get or create the githubkit client instance."""
        if self._client is None:
            self._client = GitHub(self._token)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client = None

    async def __aenter__(self) -> GitHubClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    # -------------------------------------------------------------------------
    # Identity & Repositories
    # -------------------------------------------------------------------------
    async def get_viewer_login(self) -> str:
        """Login of the user the token belongs to."""
        try:
            resp = await self._github.rest.users.async_get_authenticated()
            return str(resp.parsed_data.login)
        except API_ERRORS as e:
            raise self._handle_error(e) from e

    async def get_repository(self, owner: str, repo: str) -> GitHubRepository:
        """Get repository metadata (id, default branch).

        Raises:
            GitHubNotFoundError: If the repository doesn't exist or is hidden
        """
        try:
            resp = await self._github.rest.repos.async_get(owner=owner, repo=repo)
            return GitHubRepository.model_validate(resp.parsed_data.model_dump())
        except RequestFailed as e:
            if e.response.status_code == 404:
                raise GitHubNotFoundError(f"Repository {owner}/{repo} not found") from e
            raise self._handle_error(e) from e
        except TRANSPORT_ERRORS as e:
            raise self._handle_error(e) from e

    # -------------------------------------------------------------------------
    # Pull Request Methods
    # -------------------------------------------------------------------------
    async def list_pull_requests_page(
        self,
        owner: str,
        repo: str,
        page: int,
        *,
        state: PRState = "open",
        sort: PRSort = "updated",
        direction: Literal["asc", "desc"] = "desc",
        per_page: int = 50,
    ) -> list[GitHubPullRequest]:
        """Fetch one page of pull requests for a repository.

        Note: This endpoint returns partial PR data. For full details
        (additions, deletions, changed_files), use get_pull_request().

        Args:
            owner: Repository owner (org or user)
            repo: Repository name
            page: 1-based page number
            state: Filter by state ("open", "closed", "all")
            sort: What to sort results by
            direction: Sort direction ("asc", "desc")
            per_page: Results per page (max 100)

        Returns:
            List of GitHubPullRequest objects; shorter than per_page on the last page
        """
        try:
            resp = await self._github.rest.pulls.async_list(
                owner=owner,
                repo=repo,
                state=state,
                sort=sort,
                direction=direction,
                per_page=per_page,
                page=page,
            )
        except RequestFailed as e:
            if e.response.status_code == 404:
                raise GitHubNotFoundError(f"Repository {owner}/{repo} not found") from e
            raise self._handle_error(e) from e
        except TRANSPORT_ERRORS as e:
            raise self._handle_error(e) from e

        prs: list[GitHubPullRequest] = []
        pr_data: Any
        for pr_data in resp.parsed_data:
            try:
                prs.append(GitHubPullRequest.model_validate(pr_data.model_dump()))
            except ValidationError:
                logger.warning("Skipping unparseable PR in {}/{} page {}", owner, repo, page)
                continue
        return prs

    async def get_pull_request(
        self,
        owner: str,
        repo: str,
        number: int,
    ) -> GitHubPullRequest:
        """Get full details for a single pull request.

        This endpoint returns complete PR data including stats
        (additions, deletions, changed_files, comments, commits).

        Raises:
            GitHubNotFoundError: If PR doesn't exist
        """
        try:
            resp = await self._github.rest.pulls.async_get(
                owner=owner,
                repo=repo,
                pull_number=number,
            )
            return GitHubPullRequest.model_validate(resp.parsed_data.model_dump())
        except RequestFailed as e:
            if e.response.status_code == 404:
                raise GitHubNotFoundError(f"PR #{number} not found in {owner}/{repo}") from e
            raise self._handle_error(e) from e
        except TRANSPORT_ERRORS as e:
            raise self._handle_error(e) from e

    async def get_pull_request_reviews(
        self,
        owner: str,
        repo: str,
        number: int,
        *,
        per_page: int = 100,
    ) -> list[GitHubReview]:
        """Get reviews for a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            number: PR number
            per_page: Results per page (max 100)

        Returns:
            List of GitHubReview objects
        """
        try:
            reviews: list[GitHubReview] = []

            review_data: Any
            async for review_data in self._github.paginate(
                self._github.rest.pulls.async_list_reviews,
                owner=owner,
                repo=repo,
                pull_number=number,
                per_page=per_page,
            ):
                try:
                    reviews.append(GitHubReview.model_validate(review_data.model_dump()))
                except ValidationError:
                    continue

            return reviews
        except RequestFailed as e:
            if e.response.status_code == 404:
                raise GitHubNotFoundError(f"PR #{number} not found in {owner}/{repo}") from e
            raise self._handle_error(e) from e
        except TRANSPORT_ERRORS as e:
            raise self._handle_error(e) from e

    async def get_latest_issue_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        *,
        comment_count: int,
    ) -> GitHubIssueComment | None:
        """Get the most recent conversation comment on a pull request.

        Issue comments are listed oldest first, so with one comment per page
        the newest sits on page ``comment_count``.

        Args:
            owner: Repository owner
            repo: Repository name
            number: PR number
            comment_count: Number of conversation comments (excluding review comments)

        Returns:
            The newest comment, or None if there are none
        """
        if comment_count <= 0:
            return None
        try:
            resp = await self._github.rest.issues.async_list_comments(
                owner=owner,
                repo=repo,
                issue_number=number,
                per_page=1,
                page=comment_count,
            )
        except RequestFailed as e:
            raise self._handle_error(e) from e
        except TRANSPORT_ERRORS as e:
            raise self._handle_error(e) from e

        comments: Any = resp.parsed_data
        if not comments:
            return None
        return GitHubIssueComment.model_validate(comments[-1].model_dump())

    # -------------------------------------------------------------------------
    # CI Methods
    # -------------------------------------------------------------------------
    async def get_combined_status(self, owner: str, repo: str, ref: str) -> GitHubCombinedStatus:
        """Get the combined commit status for a ref."""
        try:
            resp = await self._github.rest.repos.async_get_combined_status_for_ref(
                owner=owner,
                repo=repo,
                ref=ref,
            )
            return GitHubCombinedStatus.model_validate(resp.parsed_data.model_dump())
        except API_ERRORS as e:
            raise self._handle_error(e) from e

    async def list_check_runs(self, owner: str, repo: str, ref: str) -> list[GitHubCheckRun]:
        """Get the check runs for a ref (first page, up to 100)."""
        try:
            resp = await self._github.rest.checks.async_list_for_ref(
                owner=owner,
                repo=repo,
                ref=ref,
                per_page=100,
            )
        except API_ERRORS as e:
            raise self._handle_error(e) from e

        data = resp.parsed_data.model_dump()
        runs: list[GitHubCheckRun] = []
        for run in data.get("check_runs") or []:
            try:
                runs.append(GitHubCheckRun.model_validate(run))
            except ValidationError:
                continue
        return runs

    # -------------------------------------------------------------------------
    # Error Handling
    # -------------------------------------------------------------------------
    def _handle_error(
        self, error: RequestFailed | RequestError | RequestTimeout
    ) -> GitHubClientError:
        """Convert githubkit exceptions to our custom exceptions."""
        if isinstance(error, RequestTimeout):
            return GitHubTimeoutError(f"GitHub request timed out: {error}")
        if not isinstance(error, RequestFailed):
            return GitHubServerError(f"GitHub request failed: {error}")

        status = error.response.status_code

        if status == 401:
            return GitHubAuthenticationError("Invalid GitHub token")
        elif status in (403, 429):
            # Check for rate limit
            headers = error.response.headers
            if status == 429 or "retry-after" in headers:
                return GitHubRateLimitError("GitHub secondary rate limit exceeded")
            if "x-ratelimit-remaining" in headers:
                remaining = int(headers.get("x-ratelimit-remaining", "0"))
                if remaining == 0:
                    reset_ts = int(headers.get("x-ratelimit-reset", "0"))
                    reset_at = datetime.fromtimestamp(reset_ts, tz=UTC) if reset_ts else None
                    return GitHubRateLimitError(
                        "GitHub rate limit exceeded",
                        reset_at=reset_at,
                    )
            return GitHubPermissionError(f"Access forbidden: {error}")
        elif status == 404:
            return GitHubNotFoundError(str(error))
        elif status >= 500:
            return GitHubServerError(f"GitHub server error ({status}): {error}", status)
        else:
            return GitHubClientError(f"GitHub API error ({status}): {error}")
