"""Configuration settings for PR Inbox."""

from datetime import timedelta
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncConfig(BaseModel):
    """Configuration for the sync pipeline.

    Controls fan-out, pagination and retry behavior when reconciling
    tracked repositories against GitHub.
    """

    # Concurrency
    max_concurrent_repositories: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Repositories synced in parallel",
    )
    max_concurrent_pull_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Pull requests reconciled in parallel within one repository",
    )

    # Pagination
    per_page: int = Field(
        default=50,
        ge=1,
        le=100,
        description="Results per page when listing pull requests",
    )
    max_pages: int = Field(
        default=10,
        ge=1,
        description="Upper bound on pages fetched per repository and state",
    )
    include_closed_within_hours: int = Field(
        default=0,
        ge=0,
        description="Also reconcile closed/merged PRs updated within this window (0 = open only)",
    )

    # Retry
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per remote call before recording an error",
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay for exponential backoff",
    )
    backoff_max_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Cap on a single backoff or rate-limit wait",
    )

    # On-demand refresh
    single_refresh_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Time budget for refreshing one pull request",
    )

    @property
    def closed_window(self) -> timedelta | None:
        """Get the closed-PR window as a timedelta (None when disabled)."""
        if self.include_closed_within_hours == 0:
            return None
        return timedelta(hours=self.include_closed_within_hours)


class ScoringWeights(BaseModel):
    """Weights for the urgency score components."""

    review_request_boost: int = Field(default=25, ge=0)
    assignee_boost: int = Field(default=20, ge=0)
    ci_failure_penalty: int = Field(default=15, ge=0)
    ci_pending_penalty: int = Field(default=5, ge=0)
    staleness_max_boost: int = Field(default=30, ge=0)
    draft_penalty: int = Field(default=20, ge=0)
    mention_boost_per_mention: int = Field(default=5, ge=0)
    my_last_activity_penalty: int = Field(default=10, ge=0)

    attention_threshold: int = Field(
        default=20,
        ge=0,
        description="Score at or above which a PR needs attention on its own",
    )


class CacheConfig(BaseModel):
    """Configuration for the AI result cache.

    TTLs are expressed per feature type; callers may still override
    the TTL for a single write.
    """

    ttl_hours: dict[str, float] = Field(
        default_factory=lambda: {
            "ai_summary": 24,
            "ai_risk_assessment": 24,
            "ai_label_suggest": 12,
            "ai_reviewer_suggest": 6,
            "ai_digest": 24,
            "ai_dependency_detection": 12,
        },
        description="Default TTL in hours by feature type",
    )
    fallback_ttl_hours: float = Field(
        default=24,
        gt=0,
        description="TTL for feature types without an explicit entry",
    )

    def ttl_for(self, feature_type: str) -> timedelta:
        """Get the default TTL for a feature type."""
        return timedelta(hours=self.ttl_hours.get(feature_type, self.fallback_ttl_hours))


class CircuitBreakerConfig(BaseModel):
    """Configuration for the per-feature circuit breaker."""

    failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures that open the circuit",
    )
    cooldown_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Time an open circuit waits before admitting a probe",
    )


class AiConfig(BaseModel):
    """Configuration for AI enrichment calls."""

    timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Time budget for one enrichment call",
    )
    stale_running_minutes: int = Field(
        default=10,
        ge=1,
        description="RUNNING audit entries older than this are treated as failed",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Database
    # --------------------------------------------------------------------------
    database_url: str = Field(
        default="sqlite+aiosqlite:///./pr_inbox.db",
        description="Async database connection string",
    )

    # --------------------------------------------------------------------------
    # GitHub API
    # --------------------------------------------------------------------------
    github_token: str = Field(
        default="",
        description="GitHub personal access token",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Sync & Scoring
    # --------------------------------------------------------------------------
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Sync pipeline configuration",
    )
    scoring: ScoringWeights = Field(
        default_factory=ScoringWeights,
        description="Urgency score weights",
    )
    flow_rules: list[dict[str, Any]] | None = Field(
        default=None,
        description="Branch promotion rules (JSON); defaults apply when unset or invalid",
    )

    # --------------------------------------------------------------------------
    # AI Enrichment
    # --------------------------------------------------------------------------
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="AI result cache TTLs",
    )
    circuit_breaker: CircuitBreakerConfig = Field(
        default_factory=CircuitBreakerConfig,
        description="Circuit breaker thresholds",
    )
    ai: AiConfig = Field(
        default_factory=AiConfig,
        description="AI enrichment call limits",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
