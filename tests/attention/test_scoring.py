"""Tests for urgency scoring and attention derivation."""

from datetime import timedelta

import pytest

from pr_inbox.attention.scoring import (
    REASON_ASSIGNED,
    REASON_CHANGES_REQUESTED,
    REASON_CI_FAILING,
    REASON_MERGE_CONFLICT,
    REASON_REVIEW_REQUESTED,
    REASON_STALE,
    build_attention_input,
    build_attention_state,
    calculate_urgency_score,
    count_mentions,
    derive_attention_reason,
    score_attention,
)
from pr_inbox.config import ScoringWeights
from pr_inbox.db.models import CiState, ReviewState
from tests.conftest import JAN_16
from tests.factories import make_attention_input, make_snapshot


def hours_after_update(hours: float):
    return JAN_16 + timedelta(hours=hours)


class TestCalculateUrgencyScore:
    """Tests for the individual score components."""

    def test_quiet_pr_scores_zero(self):
        breakdown = calculate_urgency_score(make_attention_input(), now=JAN_16)

        assert breakdown.final_score == 0
        assert all(value == 0 for value in breakdown.components().values())

    def test_review_request_and_assignment(self):
        facts = make_attention_input(review_requested=True, assigned_to_me=True)

        breakdown = calculate_urgency_score(facts, now=JAN_16)

        assert breakdown.review_request_boost == 25
        assert breakdown.assignee_boost == 20
        assert breakdown.final_score == 45

    @pytest.mark.parametrize(
        ("ci_state", "expected"),
        [
            (CiState.SUCCESS, 0),
            (CiState.FAILURE, 15),
            (CiState.PENDING, 5),
            (CiState.UNKNOWN, 3),
        ],
    )
    def test_ci_component(self, ci_state, expected):
        breakdown = calculate_urgency_score(make_attention_input(ci_state=ci_state), now=JAN_16)

        assert breakdown.ci_penalty == expected

    def test_staleness_one_point_per_four_hours(self):
        breakdown = calculate_urgency_score(make_attention_input(), now=hours_after_update(41))

        assert breakdown.staleness_boost == 10

    def test_staleness_is_capped(self):
        breakdown = calculate_urgency_score(make_attention_input(), now=hours_after_update(500))

        assert breakdown.staleness_boost == 30

    def test_future_update_is_not_negative(self):
        breakdown = calculate_urgency_score(make_attention_input(), now=hours_after_update(-10))

        assert breakdown.staleness_boost == 0

    def test_draft_penalty_is_negative_component(self):
        facts = make_attention_input(is_draft=True, review_requested=True)

        breakdown = calculate_urgency_score(facts, now=JAN_16)

        assert breakdown.draft_penalty == -20
        assert breakdown.final_score == 5

    def test_final_score_never_negative(self):
        facts = make_attention_input(is_draft=True, last_activity_by_viewer=True)

        breakdown = calculate_urgency_score(facts, now=JAN_16)

        assert breakdown.component_sum == -30
        assert breakdown.final_score == 0

    @pytest.mark.parametrize(("mentions", "expected"), [(1, 5), (3, 15), (10, 20)])
    def test_mention_boost(self, mentions, expected):
        facts = make_attention_input(mention_count=mentions)

        assert calculate_urgency_score(facts, now=JAN_16).mention_boost == expected

    @pytest.mark.parametrize(
        ("additions", "deletions", "expected"),
        [(0, 0, 0), (100, 27, 14), (1, 0, 2), (100000, 0, 20)],
    )
    def test_size_boost(self, additions, deletions, expected):
        facts = make_attention_input(additions=additions, deletions=deletions)

        assert calculate_urgency_score(facts, now=JAN_16).size_boost == expected

    @pytest.mark.parametrize(("comments", "expected"), [(3, 6), (7, 14), (8, 15)])
    def test_activity_boost(self, comments, expected):
        facts = make_attention_input(comment_count=comments)

        assert calculate_urgency_score(facts, now=JAN_16).activity_boost == expected

    @pytest.mark.parametrize(("commits", "expected"), [(4, 4), (50, 10)])
    def test_commit_boost(self, commits, expected):
        facts = make_attention_input(commit_count=commits)

        assert calculate_urgency_score(facts, now=JAN_16).commit_boost == expected

    def test_final_score_is_sum_of_components(self):
        facts = make_attention_input(
            review_requested=True,
            ci_state=CiState.PENDING,
            additions=100,
            deletions=27,
            comment_count=3,
            commit_count=4,
            last_activity_by_viewer=True,
        )

        breakdown = calculate_urgency_score(facts, now=hours_after_update(8))

        # 25 + 5 + 2 + 14 + 6 + 4 - 10
        assert breakdown.final_score == 46
        assert breakdown.final_score == breakdown.component_sum

    def test_custom_weights(self):
        weights = ScoringWeights(review_request_boost=40, ci_pending_penalty=10)
        facts = make_attention_input(review_requested=True, ci_state=CiState.UNKNOWN)

        breakdown = calculate_urgency_score(facts, weights, now=JAN_16)

        assert breakdown.review_request_boost == 40
        assert breakdown.ci_penalty == 6


class TestDeriveAttentionReason:
    """Tests for reason priority."""

    def test_review_request_beats_everything(self):
        facts = make_attention_input(
            review_requested=True, assigned_to_me=True, ci_state=CiState.FAILURE
        )

        assert derive_attention_reason(facts, 0, 20) == REASON_REVIEW_REQUESTED

    def test_assignment_beats_ci(self):
        facts = make_attention_input(assigned_to_me=True, ci_state=CiState.FAILURE)

        assert derive_attention_reason(facts, 0, 20) == REASON_ASSIGNED

    def test_ci_beats_conflict(self):
        facts = make_attention_input(ci_state=CiState.FAILURE, is_mergeable=False)

        assert derive_attention_reason(facts, 0, 20) == REASON_CI_FAILING

    def test_conflict_beats_changes_requested(self):
        facts = make_attention_input(
            is_mergeable=False, review_state=ReviewState.CHANGES_REQUESTED
        )

        assert derive_attention_reason(facts, 0, 20) == REASON_MERGE_CONFLICT

    def test_changes_requested(self):
        facts = make_attention_input(review_state=ReviewState.CHANGES_REQUESTED)

        assert derive_attention_reason(facts, 0, 20) == REASON_CHANGES_REQUESTED

    def test_stale_only_at_threshold(self):
        facts = make_attention_input()

        assert derive_attention_reason(facts, 19, 20) is None
        assert derive_attention_reason(facts, 20, 20) == REASON_STALE

    def test_unknown_mergeability_is_not_a_conflict(self):
        facts = make_attention_input(is_mergeable=None)

        assert derive_attention_reason(facts, 0, 20) is None


class TestScoreAttention:
    """Tests for needs_attention derivation."""

    def test_quiet_pr_needs_no_attention(self):
        result = score_attention(make_attention_input(), now=JAN_16)

        assert result.needs_attention is False
        assert result.attention_reason is None
        assert result.urgency_score == 0

    def test_review_request_needs_attention_even_as_draft(self):
        facts = make_attention_input(review_requested=True, is_draft=True)

        result = score_attention(facts, now=JAN_16)

        assert result.needs_attention is True
        assert result.urgency_score == 5

    def test_threshold_alone_triggers_attention(self):
        result = score_attention(make_attention_input(), now=hours_after_update(80))

        assert result.urgency_score == 20
        assert result.needs_attention is True
        assert result.attention_reason == REASON_STALE

    def test_just_below_threshold(self):
        result = score_attention(make_attention_input(), now=hours_after_update(79))

        assert result.urgency_score == 19
        assert result.needs_attention is False

    def test_changes_requested_needs_attention(self):
        facts = make_attention_input(review_state=ReviewState.CHANGES_REQUESTED)

        assert score_attention(facts, now=JAN_16).needs_attention is True


class TestCountMentions:
    """Tests for @-mention counting."""

    def test_counts_case_insensitively_at_word_boundary(self):
        body = "@alice please look, cc @Alice and @alicebob"

        assert count_mentions(body, "alice") == 2

    def test_escapes_login(self):
        assert count_mentions("@a.b hi @axb", "a.b") == 1

    @pytest.mark.parametrize(("text", "login"), [(None, "alice"), ("@alice", None), ("", "x")])
    def test_missing_inputs(self, text, login):
        assert count_mentions(text, login) == 0


class TestBuildAttentionInput:
    """Tests for viewer-relative fact extraction."""

    def test_viewer_match_is_case_insensitive(self):
        snapshot = make_snapshot(requested_reviewers=["Alice"], assignees=["ALICE"])

        facts = build_attention_input(snapshot, "alice")

        assert facts.review_requested is True
        assert facts.assigned_to_me is True

    def test_other_viewer(self):
        snapshot = make_snapshot(requested_reviewers=["carol"], assignees=["carol"])

        facts = build_attention_input(snapshot, "alice")

        assert facts.review_requested is False
        assert facts.assigned_to_me is False

    def test_without_viewer_uses_review_state(self):
        snapshot = make_snapshot(
            review_state=ReviewState.REVIEW_REQUESTED,
            assignees=["alice"],
            body="@alice",
        )

        facts = build_attention_input(snapshot, None)

        assert facts.review_requested is True
        assert facts.assigned_to_me is False
        assert facts.mention_count == 0

    def test_copies_snapshot_facts(self):
        snapshot = make_snapshot(
            draft=True,
            mergeable=False,
            additions=5,
            deletions=3,
            comment_count=2,
            commit_count=7,
            body="ping @alice",
            last_activity_by_viewer=True,
        )

        facts = build_attention_input(snapshot, "alice")

        assert facts.is_draft is True
        assert facts.is_mergeable is False
        assert (facts.additions, facts.deletions) == (5, 3)
        assert (facts.comment_count, facts.commit_count) == (2, 7)
        assert facts.mention_count == 1
        assert facts.last_activity_by_viewer is True


class TestBuildAttentionState:
    """Tests for the full snapshot-to-attention pipeline."""

    def test_review_requested_pr(self):
        snapshot = make_snapshot(requested_reviewers=["alice"])

        result = build_attention_state(snapshot, "alice", now=JAN_16)

        assert result.needs_attention is True
        assert result.attention_reason == REASON_REVIEW_REQUESTED
        assert result.urgency_score == 25
        assert result.score_breakdown.review_request_boost == 25

    def test_deterministic_for_fixed_now(self):
        snapshot = make_snapshot(additions=40, comment_count=2, ci_state=CiState.PENDING)

        first = build_attention_state(snapshot, "alice", now=hours_after_update(30))
        second = build_attention_state(snapshot, "alice", now=hours_after_update(30))

        assert first == second
