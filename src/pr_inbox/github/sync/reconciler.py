"""Merge one pull request snapshot into local storage.

Each reconciliation is a single transaction: PR upsert, flow check,
attention scoring and attention upsert either all land or none do.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pr_inbox.attention.flow import DEFAULT_FLOW_RULES, get_flow_phase, validate_pr_flow
from pr_inbox.attention.scoring import build_attention_state
from pr_inbox.config import ScoringWeights
from pr_inbox.db.repositories import AttentionRepository, PullRequestRepository
from pr_inbox.logging import get_logger
from pr_inbox.schemas.flow import FlowRule
from pr_inbox.schemas.pr import PullRequestSnapshot

from .locks import KeyedLock
from .results import ReconcileResult

logger = get_logger(__name__)


class PullRequestReconciler:
    """Idempotent load-modify-save for one pull request at a time.

    Writes for the same (repository_id, number) are serialized in-process
    by a keyed lock; across processes the upsert's unique key keeps rows
    from duplicating.

    Usage:
        reconciler = PullRequestReconciler(get_session_factory())
        result = await reconciler.reconcile(repo.id, snapshot, "alice")
        print(result.action, result.attention.urgency_score)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        flow_rules: Sequence[FlowRule] = DEFAULT_FLOW_RULES,
        weights: ScoringWeights | None = None,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._flow_rules = tuple(flow_rules)
        self._weights = weights or ScoringWeights()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._locks = locks or KeyedLock()

    async def reconcile(
        self,
        repository_id: int,
        snapshot: PullRequestSnapshot,
        viewer_login: str | None,
    ) -> ReconcileResult:
        """Store a snapshot and its derived attention state.

        Args:
            repository_id: Local repository row ID
            snapshot: Normalized remote state
            viewer_login: Login the attention state is computed for

        Returns:
            ReconcileResult describing what was written
        """
        async with self._locks.hold((repository_id, snapshot.number)):
            now = self._clock()
            async with self._session_factory() as session, session.begin():
                pr_repo = PullRequestRepository(session)
                existing = await pr_repo.get_by_number(repository_id, snapshot.number)
                pr = await pr_repo.upsert(repository_id, snapshot.number, snapshot.to_row())

                violation = validate_pr_flow(snapshot.head_ref, snapshot.base_ref, self._flow_rules)
                phase = get_flow_phase(snapshot.head_ref, snapshot.base_ref, self._flow_rules)
                attention = build_attention_state(
                    snapshot, viewer_login, weights=self._weights, now=now
                )

                await AttentionRepository(session).replace(
                    pr.id,
                    {
                        "needs_attention": attention.needs_attention,
                        "attention_reason": attention.attention_reason,
                        "urgency_score": attention.urgency_score,
                        "score_breakdown": attention.score_breakdown.model_dump(),
                        "flow_phase": phase,
                        "flow_violation": violation.model_dump() if violation else None,
                        "last_synced_at": now,
                    },
                )
                pr_id = pr.id

        logger.debug(
            "Reconciled PR #{} (repo {}): score={} attention={}",
            snapshot.number,
            repository_id,
            attention.urgency_score,
            attention.needs_attention,
        )
        return ReconcileResult(
            pull_request_id=pr_id,
            number=snapshot.number,
            created=existing is None,
            attention=attention,
            flow_phase=phase,
            flow_violation=violation.message if violation else None,
        )
