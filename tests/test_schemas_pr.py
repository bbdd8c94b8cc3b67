"""Tests for PullRequestSnapshot."""

import pytest
from pydantic import ValidationError

from pr_inbox.db.models import CiState, PRState, ReviewState
from pr_inbox.schemas.github_api import GitHubPullRequest
from pr_inbox.schemas.pr import PullRequestRead, PullRequestSnapshot, coerce_string_list
from tests.conftest import JAN_15, JAN_16
from tests.factories import make_github_pr, make_pull_request, make_repository, make_snapshot


def from_payload(**overrides) -> PullRequestSnapshot:
    pr = GitHubPullRequest.model_validate(make_github_pr(7, **overrides))
    return PullRequestSnapshot.from_github(
        pr,
        ci_state=CiState.PENDING,
        review_state=ReviewState.APPROVED,
        last_activity_by_viewer=True,
    )


class TestCoerceStringList:
    """Tests for coerce_string_list."""

    @pytest.mark.parametrize("value", [None, "bug", {"name": "bug"}, 3])
    def test_non_lists_become_empty(self, value):
        assert coerce_string_list(value) == []

    def test_drops_non_strings_and_duplicates(self):
        assert coerce_string_list(["bug", 1, None, "", "ui", "bug"]) == ["bug", "ui"]

    def test_accepts_tuples(self):
        assert coerce_string_list(("a", "b")) == ["a", "b"]


class TestFromGitHub:
    """Tests for PullRequestSnapshot.from_github."""

    def test_maps_fields(self):
        snapshot = from_payload(
            labels=[{"name": "bug"}],
            assignees=[{"login": "alice"}],
            requested_teams=[{"slug": "core"}],
            milestone={"title": "v2"},
            comments=2,
            review_comments=1,
        )

        assert snapshot.number == 7
        assert snapshot.github_id == 1007
        assert snapshot.state == PRState.OPEN
        assert snapshot.labels == ["bug"]
        assert snapshot.assignees == ["alice"]
        assert snapshot.requested_reviewers == ["team:core"]
        assert snapshot.milestone == "v2"
        assert snapshot.comment_count == 3
        assert snapshot.commit_count == 1
        assert snapshot.ci_state == CiState.PENDING
        assert snapshot.review_state == ReviewState.APPROVED
        assert snapshot.last_activity_by_viewer is True
        assert snapshot.github_created_at == JAN_15
        assert snapshot.last_activity_at == JAN_16

    def test_merged(self):
        snapshot = from_payload(state="closed", merged_at="2024-01-17T09:00:00Z")
        assert snapshot.state == PRState.MERGED

    def test_closed(self):
        snapshot = from_payload(state="closed", closed_at="2024-01-17T09:00:00Z")
        assert snapshot.state == PRState.CLOSED

    def test_same_remote_state_compares_equal(self):
        assert from_payload() == from_payload()


class TestSnapshot:
    """Tests for validation and row conversion."""

    def test_normalizes_stored_lists(self):
        snapshot = make_snapshot(labels=["bug", "bug", 5], assignees="alice")

        assert snapshot.labels == ["bug"]
        assert snapshot.assignees == []

    def test_rejects_negative_counts(self):
        with pytest.raises(ValidationError):
            make_snapshot(additions=-1)

    def test_to_row_excludes_number(self):
        row = make_snapshot(42).to_row()

        assert "number" not in row
        assert row["head_ref"] == "feature/pr-42"
        assert row["ci_state"] == CiState.SUCCESS


class TestPullRequestRead:
    """Tests for PullRequestRead."""

    async def test_from_orm_normalizes_lists(self, db_session):
        repo = make_repository(db_session)
        await db_session.flush()
        pr = make_pull_request(
            db_session, repo, number=5, labels=["bug", None, "bug"], assignees={"login": "x"}
        )
        await db_session.flush()

        read = PullRequestRead.from_orm(pr)

        assert read.number == 5
        assert read.repository_id == repo.id
        assert read.labels == ["bug"]
        assert read.assignees == []
        assert read.github_updated_at == JAN_16
