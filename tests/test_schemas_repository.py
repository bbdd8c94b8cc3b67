"""Tests for repository schemas and parsing."""

import pytest
from pydantic import ValidationError

from pr_inbox.schemas import TrackedRepositoryRead, parse_repo_string
from pr_inbox.schemas.repository import PullRequestRef
from tests.factories import make_repository, make_tracked_repository


class TestParseRepoString:
    """Tests for parse_repo_string."""

    def test_valid(self):
        assert parse_repo_string("octo/widgets") == ("octo", "widgets")

    def test_strips_whitespace(self):
        assert parse_repo_string("  octo/my.repo-2 ") == ("octo", "my.repo-2")

    @pytest.mark.parametrize("value", ["widgets", "octo/", "/widgets", "a/b/c", "octo/wid gets"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="owner/name"):
            parse_repo_string(value)


class TestPullRequestRef:
    """Tests for PullRequestRef."""

    def test_parts_and_str(self):
        ref = PullRequestRef(full_name="octo/widgets", number=42)

        assert (ref.owner, ref.name) == ("octo", "widgets")
        assert str(ref) == "octo/widgets#42"

    def test_invalid_repository(self):
        with pytest.raises(ValidationError):
            PullRequestRef(full_name="widgets", number=1)

    def test_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            PullRequestRef(full_name="octo/widgets", number=0)


class TestTrackedRepositoryRead:
    """Tests for TrackedRepositoryRead."""

    async def test_from_orm(self, db_session):
        repo = make_repository(db_session)
        tracking = make_tracked_repository(db_session, repository=repo)
        await db_session.flush()

        read = TrackedRepositoryRead.from_orm(tracking)

        assert read.user_id == "alice"
        assert read.full_name == "octo/widgets"
        assert read.repository_id == repo.id

    async def test_from_orm_unlinked(self, db_session):
        tracking = make_tracked_repository(db_session, user_id="bob")
        await db_session.flush()

        assert TrackedRepositoryRead.from_orm(tracking).repository_id is None
