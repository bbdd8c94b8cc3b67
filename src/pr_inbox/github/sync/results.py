"""Result objects for sync operations.

Structured results provide consistent interfaces for monitoring,
error handling, and CLI output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pr_inbox.db.models import SyncStatus, SyncTrigger
from pr_inbox.schemas.attention import AttentionResult


@dataclass(frozen=True)
class SyncIssue:
    """One per-item failure collected during a sync run."""

    repository: str
    """Full repository name (owner/repo)."""

    message: str
    """Human-readable error."""

    pull_number: int | None = None
    """PR number, when the failure is about a single PR."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {"repository": self.repository, "message": self.message}
        if self.pull_number is not None:
            data["pull_number"] = self.pull_number
        return data


@dataclass
class ReconcileResult:
    """Outcome of reconciling one PR snapshot."""

    pull_request_id: int
    """Local id of the PR row."""

    number: int
    """PR number."""

    created: bool = False
    """True if the PR row was inserted rather than updated."""

    attention: AttentionResult | None = None
    """Attention state stored alongside the PR."""

    flow_phase: str | None = None
    """Flow phase of the head branch, if any rule matched."""

    flow_violation: str | None = None
    """Violation message, if the PR targets a disallowed branch."""

    @property
    def action(self) -> str:
        return "created" if self.created else "updated"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "pull_request_id": self.pull_request_id,
            "number": self.number,
            "action": self.action,
            "flow_phase": self.flow_phase,
            "flow_violation": self.flow_violation,
        }
        if self.attention is not None:
            result["needs_attention"] = self.attention.needs_attention
            result["attention_reason"] = self.attention.attention_reason
            result["urgency_score"] = self.attention.urgency_score
        return result


@dataclass
class RepoSyncResult:
    """Result of syncing a single repository."""

    repository: str
    """Full repository name (owner/repo)."""

    pulled: int = 0
    """PRs listed from GitHub."""

    created: int = 0
    """PR rows inserted."""

    updated: int = 0
    """PR rows updated."""

    errors: list[SyncIssue] = field(default_factory=list)
    """Per-item failures."""

    @property
    def upserted(self) -> int:
        return self.created + self.updated

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "repository": self.repository,
            "pulled": self.pulled,
            "created": self.created,
            "updated": self.updated,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class SyncRunResult:
    """Result of one sync run across repositories."""

    run_id: str
    """Identifier of the persisted SyncRun."""

    trigger: SyncTrigger
    """What started the run."""

    started_at: datetime
    """When the run started."""

    finished_at: datetime | None = None
    """When the run finished."""

    status: SyncStatus = SyncStatus.RUNNING
    """Final status once finished."""

    viewer_login: str | None = None
    """Login the attention state was computed for."""

    repo_results: list[RepoSyncResult] = field(default_factory=list)
    """Results for each repository."""

    setup_errors: list[SyncIssue] = field(default_factory=list)
    """Failures before any repository was synced (e.g. repository lookup)."""

    @property
    def pulled_count(self) -> int:
        return sum(r.pulled for r in self.repo_results)

    @property
    def upserted_count(self) -> int:
        return sum(r.upserted for r in self.repo_results)

    @property
    def errors(self) -> list[SyncIssue]:
        """Every collected failure, setup errors first."""
        errors = list(self.setup_errors)
        for repo_result in self.repo_results:
            errors.extend(repo_result.errors)
        return errors

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def resolve_status(self) -> SyncStatus:
        """SUCCESS without errors, PARTIAL if something landed anyway, else FAILED."""
        if not self.errors:
            return SyncStatus.SUCCESS
        if self.upserted_count > 0:
            return SyncStatus.PARTIAL
        return SyncStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "trigger": self.trigger.value,
            "status": self.status.value,
            "viewer_login": self.viewer_login,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "summary": {
                "repositories": len(self.repo_results),
                "pulled": self.pulled_count,
                "upserted": self.upserted_count,
                "errors": self.error_count,
            },
            "errors": [e.to_dict() for e in self.errors],
            "repositories": [r.to_dict() for r in self.repo_results],
        }
