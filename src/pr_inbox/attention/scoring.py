"""Urgency scoring and needs-attention derivation.

Every factor is kept as its own signed component so the UI can explain a
score; the final score is always ``max(0, sum(components))``.
"""

import math
import re
from datetime import UTC, datetime

from pr_inbox.config import ScoringWeights
from pr_inbox.db.models import CiState, ReviewState
from pr_inbox.schemas.attention import AttentionInput, AttentionResult, ScoreBreakdown
from pr_inbox.schemas.pr import PullRequestSnapshot

# Fixed caps, independent of configurable weights
MAX_MENTION_BOOST = 20
MAX_SIZE_BOOST = 20
MAX_ACTIVITY_BOOST = 15
MAX_COMMIT_BOOST = 10
STALENESS_HOURS_PER_POINT = 4
UNKNOWN_CI_FACTOR = 0.6

REASON_REVIEW_REQUESTED = "Review requested"
REASON_ASSIGNED = "Assigned to you"
REASON_CI_FAILING = "CI failing"
REASON_MERGE_CONFLICT = "Has merge conflicts"
REASON_CHANGES_REQUESTED = "Changes requested"
REASON_STALE = "Stale pull request"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _ci_component(ci_state: CiState, weights: ScoringWeights) -> int:
    if ci_state == CiState.FAILURE:
        return weights.ci_failure_penalty
    if ci_state == CiState.PENDING:
        return weights.ci_pending_penalty
    if ci_state == CiState.UNKNOWN:
        return _round_half_up(weights.ci_pending_penalty * UNKNOWN_CI_FACTOR)
    return 0


def calculate_urgency_score(
    facts: AttentionInput,
    weights: ScoringWeights | None = None,
    *,
    now: datetime | None = None,
) -> ScoreBreakdown:
    """Compute the signed score breakdown for a set of facts.

    Args:
        facts: Flattened PR facts
        weights: Component weights (defaults when omitted)
        now: Reference time for staleness (current UTC time when omitted)

    Returns:
        ScoreBreakdown whose final_score is max(0, sum of components)
    """
    w = weights or ScoringWeights()
    now = now or datetime.now(UTC)

    hours_stale = max(0.0, (now - facts.updated_at).total_seconds() / 3600)
    total_lines = max(0, facts.additions) + max(0, facts.deletions)

    components = {
        "review_request_boost": w.review_request_boost if facts.review_requested else 0,
        "assignee_boost": w.assignee_boost if facts.assigned_to_me else 0,
        "ci_penalty": _ci_component(facts.ci_state, w),
        "staleness_boost": min(
            w.staleness_max_boost, math.floor(hours_stale / STALENESS_HOURS_PER_POINT)
        ),
        "draft_penalty": -w.draft_penalty if facts.is_draft else 0,
        "mention_boost": min(
            MAX_MENTION_BOOST, max(0, facts.mention_count) * w.mention_boost_per_mention
        ),
        "size_boost": min(MAX_SIZE_BOOST, math.floor(math.log2(total_lines + 1) * 2)),
        "activity_boost": min(MAX_ACTIVITY_BOOST, max(0, facts.comment_count) * 2),
        "commit_boost": min(MAX_COMMIT_BOOST, max(0, facts.commit_count)),
        "my_last_activity_penalty": (
            -w.my_last_activity_penalty if facts.last_activity_by_viewer else 0
        ),
    }
    return ScoreBreakdown(**components, final_score=max(0, sum(components.values())))


def derive_attention_reason(
    facts: AttentionInput,
    final_score: int,
    threshold: int,
) -> str | None:
    """Pick the dominant reason, in fixed priority order.

    Review request, assignment, CI failure, merge conflict, requested
    changes, then staleness once the score crosses the threshold.
    """
    if facts.review_requested:
        return REASON_REVIEW_REQUESTED
    if facts.assigned_to_me:
        return REASON_ASSIGNED
    if facts.ci_state == CiState.FAILURE:
        return REASON_CI_FAILING
    if facts.is_mergeable is False:
        return REASON_MERGE_CONFLICT
    if facts.review_state == ReviewState.CHANGES_REQUESTED:
        return REASON_CHANGES_REQUESTED
    if final_score >= threshold:
        return REASON_STALE
    return None


def score_attention(
    facts: AttentionInput,
    weights: ScoringWeights | None = None,
    *,
    now: datetime | None = None,
) -> AttentionResult:
    """Score facts and decide whether they need attention."""
    w = weights or ScoringWeights()
    breakdown = calculate_urgency_score(facts, w, now=now)
    final_score = breakdown.final_score

    needs_attention = (
        facts.review_requested
        or facts.assigned_to_me
        or facts.ci_state == CiState.FAILURE
        or facts.is_mergeable is False
        or facts.review_state == ReviewState.CHANGES_REQUESTED
        or final_score >= w.attention_threshold
    )
    return AttentionResult(
        needs_attention=needs_attention,
        attention_reason=derive_attention_reason(facts, final_score, w.attention_threshold),
        urgency_score=final_score,
        score_breakdown=breakdown,
    )


# -----------------------------------------------------------------------------
# Viewer-relative facts
# -----------------------------------------------------------------------------


def count_mentions(text: str | None, login: str | None) -> int:
    """Count case-insensitive ``@login`` mentions ending at a word boundary."""
    if not text or not login:
        return 0
    pattern = re.compile(rf"@{re.escape(login)}\b", re.IGNORECASE)
    return len(pattern.findall(text))


def _contains_login(values: list[str], login: str) -> bool:
    needle = login.casefold()
    return any(value.casefold() == needle for value in values)


def build_attention_input(
    snapshot: PullRequestSnapshot,
    viewer_login: str | None,
) -> AttentionInput:
    """Flatten a snapshot into scorer input from the viewer's point of view.

    Without a known viewer, nothing counts as assigned or mentioned and a
    review request is inferred from the review state alone.
    """
    viewer = viewer_login.strip() if viewer_login and viewer_login.strip() else None

    if viewer:
        review_requested = _contains_login(snapshot.requested_reviewers, viewer)
        assigned_to_me = _contains_login(snapshot.assignees, viewer)
    else:
        review_requested = snapshot.review_state == ReviewState.REVIEW_REQUESTED
        assigned_to_me = False

    return AttentionInput(
        review_requested=review_requested,
        assigned_to_me=assigned_to_me,
        ci_state=snapshot.ci_state,
        is_draft=snapshot.draft,
        created_at=snapshot.github_created_at,
        updated_at=snapshot.github_updated_at,
        is_mergeable=snapshot.mergeable,
        review_state=snapshot.review_state,
        additions=snapshot.additions,
        deletions=snapshot.deletions,
        comment_count=snapshot.comment_count,
        commit_count=snapshot.commit_count,
        mention_count=count_mentions(snapshot.body, viewer),
        last_activity_by_viewer=snapshot.last_activity_by_viewer,
    )


def build_attention_state(
    snapshot: PullRequestSnapshot,
    viewer_login: str | None,
    *,
    weights: ScoringWeights | None = None,
    now: datetime | None = None,
) -> AttentionResult:
    """Derive the full attention state of a pull request.

    Usage:
        result = build_attention_state(snapshot, "alice", now=sync_started_at)
        if result.needs_attention:
            print(result.attention_reason, result.urgency_score)

    Args:
        snapshot: Normalized pull request facts
        viewer_login: Login of the user the inbox belongs to, if known
        weights: Score weights and threshold
        now: Reference time for staleness

    Returns:
        AttentionResult
    """
    facts = build_attention_input(snapshot, viewer_login)
    return score_attention(facts, weights, now=now)
