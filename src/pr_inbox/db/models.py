"""SQLAlchemy ORM models for PR Inbox."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)
from sqlalchemy.types import JSON

from pr_inbox.db.types import UTCDateTime


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class PRState(str, Enum):
    """Pull request state enum."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"  # closed without merge
    MERGED = "MERGED"


class CiState(str, Enum):
    """Combined CI state for the PR head commit."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    PENDING = "PENDING"
    UNKNOWN = "UNKNOWN"


class ReviewState(str, Enum):
    """Review state from the viewer's triage perspective."""

    REVIEW_REQUESTED = "REVIEW_REQUESTED"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    UNREVIEWED = "UNREVIEWED"
    DRAFT = "DRAFT"


class SyncTrigger(str, Enum):
    """What started a sync run."""

    POLL = "POLL"
    MANUAL = "MANUAL"


class SyncStatus(str, Enum):
    """Overall outcome of a sync run."""

    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"  # some items failed, something was upserted
    FAILED = "FAILED"


class ActionType(str, Enum):
    """Kinds of audited actions."""

    SYNC_POLL = "SYNC_POLL"
    SYNC_MANUAL = "SYNC_MANUAL"
    SYNC_SINGLE = "SYNC_SINGLE"
    AI_SUMMARY = "AI_SUMMARY"
    AI_RISK_ASSESSMENT = "AI_RISK_ASSESSMENT"
    AI_LABEL_SUGGEST = "AI_LABEL_SUGGEST"
    AI_REVIEWER_SUGGEST = "AI_REVIEWER_SUGGEST"
    AI_DIGEST = "AI_DIGEST"
    AI_DEPENDENCY_DETECTION = "AI_DEPENDENCY_DETECTION"


class ActionResultStatus(str, Enum):
    """Status of an audited action."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    RUNNING = "RUNNING"


# ------------------------------------------------------------------------------
# Repository model
# ------------------------------------------------------------------------------
class Repository(Base):
    """Canonical GitHub repository shared by every user tracking it."""

    __tablename__ = "repositories"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner: Mapped[str] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(100))
    full_name: Mapped[str] = mapped_column(String(200), unique=True)  # "octo/widgets"
    github_id: Mapped[int | None] = mapped_column(nullable=True)
    default_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=func.now())

    # Relationships
    pull_requests: Mapped[list["PullRequest"]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
    )
    trackings: Mapped[list["TrackedRepository"]] = relationship(back_populates="repository")

    def __repr__(self) -> str:
        return f"<Repository(id={self.id}, full_name='{self.full_name}')>"


# ------------------------------------------------------------------------------
# TrackedRepository model
# ------------------------------------------------------------------------------
class TrackedRepository(Base):
    """A user's subscription to a remote repository."""

    __tablename__ = "tracked_repositories"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100))
    full_name: Mapped[str] = mapped_column(String(200))
    repository_id: Mapped[int | None] = mapped_column(
        ForeignKey("repositories.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=func.now())

    repository: Mapped["Repository | None"] = relationship(back_populates="trackings")

    __table_args__ = (UniqueConstraint("user_id", "full_name", name="uq_tracked_user_repo"),)

    def __repr__(self) -> str:
        return f"<TrackedRepository(user='{self.user_id}', full_name='{self.full_name}')>"


# ------------------------------------------------------------------------------
# PullRequest model
# ------------------------------------------------------------------------------
class PullRequest(Base):
    """Local mirror of one remote pull request."""

    __tablename__ = "pull_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    repository_id: Mapped[int] = mapped_column(ForeignKey("repositories.id", ondelete="CASCADE"))

    # --------------------------------------------------------------------------
    # Identity
    # --------------------------------------------------------------------------
    number: Mapped[int] = mapped_column()
    github_id: Mapped[int | None] = mapped_column(nullable=True)
    url: Mapped[str] = mapped_column(String(500))
    author_login: Mapped[str] = mapped_column(String(100))

    # --------------------------------------------------------------------------
    # Mutable facts (overwritten on every reconciliation)
    # --------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(String(500))
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[PRState] = mapped_column(default=PRState.OPEN)
    draft: Mapped[bool] = mapped_column(default=False)
    labels: Mapped[list[str]] = mapped_column(JSON, default=list)
    assignees: Mapped[list[str]] = mapped_column(JSON, default=list)
    requested_reviewers: Mapped[list[str]] = mapped_column(JSON, default=list)
    milestone: Mapped[str | None] = mapped_column(String(255), nullable=True)
    head_ref: Mapped[str] = mapped_column(String(255))
    base_ref: Mapped[str] = mapped_column(String(255))
    mergeable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)  # None = unknown
    additions: Mapped[int] = mapped_column(default=0)
    deletions: Mapped[int] = mapped_column(default=0)
    changed_files: Mapped[int] = mapped_column(default=0)
    comment_count: Mapped[int] = mapped_column(default=0)
    commit_count: Mapped[int] = mapped_column(default=0)
    ci_state: Mapped[CiState] = mapped_column(default=CiState.UNKNOWN)
    review_state: Mapped[ReviewState] = mapped_column(default=ReviewState.UNREVIEWED)
    last_activity_by_viewer: Mapped[bool] = mapped_column(default=False)

    # --------------------------------------------------------------------------
    # Timestamps
    # --------------------------------------------------------------------------
    github_created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    github_updated_at: Mapped[datetime] = mapped_column(UTCDateTime)
    last_activity_at: Mapped[datetime] = mapped_column(UTCDateTime)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=func.now())

    # --------------------------------------------------------------------------
    # Relationships
    # --------------------------------------------------------------------------
    repository: Mapped["Repository"] = relationship(back_populates="pull_requests")
    attention: Mapped["PullRequestAttention | None"] = relationship(
        back_populates="pull_request",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __table_args__ = (UniqueConstraint("repository_id", "number", name="uq_repo_pr_number"),)

    def __repr__(self) -> str:
        return f"<PullRequest(id={self.id}, repo='{self.repository_id}', number={self.number})>"

    @property
    def is_open(self) -> bool:
        """Check if PR is still open."""
        return self.state == PRState.OPEN


# ------------------------------------------------------------------------------
# PullRequestAttention model
# ------------------------------------------------------------------------------
class PullRequestAttention(Base):
    """Derived attention state, one row per pull request."""

    __tablename__ = "pull_request_attention"

    id: Mapped[int] = mapped_column(primary_key=True)
    pull_request_id: Mapped[int] = mapped_column(
        ForeignKey("pull_requests.id", ondelete="CASCADE"), unique=True
    )

    needs_attention: Mapped[bool] = mapped_column(default=False)
    attention_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    urgency_score: Mapped[int] = mapped_column(default=0)
    score_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    flow_phase: Mapped[str | None] = mapped_column(String(100), nullable=True)
    flow_violation: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    last_synced_at: Mapped[datetime] = mapped_column(UTCDateTime)

    # Written by risk enrichment only
    risk_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    risk_factors: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    pull_request: Mapped["PullRequest"] = relationship(back_populates="attention")

    def __repr__(self) -> str:
        return (
            f"<PullRequestAttention(pr_id={self.pull_request_id}, "
            f"score={self.urgency_score}, needs_attention={self.needs_attention})>"
        )


# ------------------------------------------------------------------------------
# SyncRun model
# ------------------------------------------------------------------------------
class SyncRun(Base):
    """Audit record for one sync orchestrator invocation."""

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    run_id: Mapped[str] = mapped_column(String(32), unique=True)
    trigger: Mapped[SyncTrigger] = mapped_column()
    status: Mapped[SyncStatus] = mapped_column(default=SyncStatus.RUNNING)
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    viewer_login: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracked_repos: Mapped[list[str]] = mapped_column(JSON, default=list)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime)
    finished_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    pulled_count: Mapped[int] = mapped_column(default=0)
    upserted_count: Mapped[int] = mapped_column(default=0)
    error_count: Mapped[int] = mapped_column(default=0)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:
        return f"<SyncRun(run_id='{self.run_id}', status={self.status.value})>"


# ------------------------------------------------------------------------------
# AiCacheEntry model
# ------------------------------------------------------------------------------
class AiCacheEntry(Base):
    """Cached output of an AI enrichment feature.

    Scoped to exactly one of a pull request or a repository. PR-scoped
    rows are unique per feature and updated in place; repository-scoped
    rows accumulate and the newest live one wins.
    """

    __tablename__ = "ai_cache"

    id: Mapped[int] = mapped_column(primary_key=True)
    feature_type: Mapped[str] = mapped_column(String(50))
    pull_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=True
    )
    repository: Mapped[str | None] = mapped_column(String(200), nullable=True)

    result_json: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    result_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime)

    __table_args__ = (
        UniqueConstraint("pull_request_id", "feature_type", name="uq_ai_cache_pr_feature"),
        CheckConstraint(
            "(pull_request_id IS NULL) <> (repository IS NULL)",
            name="ck_ai_cache_single_scope",
        ),
        Index("ix_ai_cache_repo_feature", "repository", "feature_type", "generated_at"),
    )

    def __repr__(self) -> str:
        scope = f"pr={self.pull_request_id}" if self.pull_request_id else f"repo={self.repository}"
        return f"<AiCacheEntry(feature='{self.feature_type}', {scope})>"


# ------------------------------------------------------------------------------
# ActionLog model
# ------------------------------------------------------------------------------
class ActionLog(Base):
    """Append-only record of an audited action."""

    __tablename__ = "action_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    action_type: Mapped[ActionType] = mapped_column()
    result_status: Mapped[ActionResultStatus] = mapped_column()
    repository: Mapped[str] = mapped_column(String(200))
    pull_number: Mapped[int | None] = mapped_column(nullable=True)
    actor_login: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)

    __table_args__ = (
        Index("ix_action_logs_lookup", "action_type", "repository", "pull_number", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActionLog(id={self.id}, type={self.action_type.value}, "
            f"status={self.result_status.value})>"
        )
