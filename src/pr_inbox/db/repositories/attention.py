"""Repository for PullRequestAttention rows."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_inbox.db.models import PullRequestAttention

from .base import BaseRepository

# Owned by risk enrichment; the scorer never writes them
_ENRICHMENT_COLUMNS = frozenset({"risk_level", "risk_factors"})


class AttentionRepository(BaseRepository[PullRequestAttention]):
    """Repository for derived attention state."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PullRequestAttention)

    async def get_for_pull_request(self, pull_request_id: int) -> PullRequestAttention | None:
        """Get the attention row of a pull request."""
        stmt = select(PullRequestAttention).where(
            PullRequestAttention.pull_request_id == pull_request_id
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace(self, pull_request_id: int, fields: dict[str, Any]) -> PullRequestAttention:
        """Overwrite every scorer-owned column of a pull request's attention row.

        Args:
            pull_request_id: Pull request the row belongs to
            fields: needs_attention, attention_reason, urgency_score,
                score_breakdown, flow_phase, flow_violation, last_synced_at

        Returns:
            The stored attention row
        """
        values = {k: v for k, v in fields.items() if k not in _ENRICHMENT_COLUMNS}
        stmt = self._insert().values(pull_request_id=pull_request_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["pull_request_id"],
            set_={key: stmt.excluded[key] for key in values},
        ).returning(PullRequestAttention.id)

        result = await self._session.execute(stmt)
        row_id = result.scalar_one()
        row = await self._session.get(PullRequestAttention, row_id, populate_existing=True)
        assert row is not None
        return row

    async def set_risk(
        self,
        pull_request_id: int,
        risk_level: str,
        risk_factors: list[str],
    ) -> PullRequestAttention | None:
        """Record an enrichment risk assessment.

        Returns:
            Updated row, or None when the pull request has not been scored yet
        """
        row = await self.get_for_pull_request(pull_request_id)
        if row is None:
            return None
        row.risk_level = risk_level
        row.risk_factors = list(risk_factors)
        await self.flush()
        return row
