"""Pydantic schemas for PR Inbox.

This module provides input validation and output serialization models.
"""

from .attention import AttentionInput, AttentionRead, AttentionResult, ScoreBreakdown
from .audit import ActionLogRead
from .base import SchemaBase
from .cache import CachedResult, CacheKey, FeatureType, PullRequestKey, RepositoryKey
from .flow import FlowRule, FlowViolation
from .github_api import (
    GitHubBranch,
    GitHubCheckRun,
    GitHubCombinedStatus,
    GitHubIssueComment,
    GitHubLabel,
    GitHubMilestone,
    GitHubPullRequest,
    GitHubRepository,
    GitHubReview,
    GitHubTeam,
    GitHubUser,
)
from .pr import PullRequestRead, PullRequestSnapshot, coerce_string_list
from .repository import PullRequestRef, TrackedRepositoryRead, parse_repo_string

__all__ = [
    # Attention
    "AttentionInput",
    "AttentionRead",
    "AttentionResult",
    "ScoreBreakdown",
    # Audit
    "ActionLogRead",
    # Base
    "SchemaBase",
    # Cache
    "CacheKey",
    "CachedResult",
    "FeatureType",
    "PullRequestKey",
    "RepositoryKey",
    # Flow
    "FlowRule",
    "FlowViolation",
    # GitHub API
    "GitHubBranch",
    "GitHubCheckRun",
    "GitHubCombinedStatus",
    "GitHubIssueComment",
    "GitHubLabel",
    "GitHubMilestone",
    "GitHubPullRequest",
    "GitHubRepository",
    "GitHubReview",
    "GitHubTeam",
    "GitHubUser",
    # PR
    "PullRequestRead",
    "PullRequestSnapshot",
    "coerce_string_list",
    # Repository
    "PullRequestRef",
    "TrackedRepositoryRead",
    "parse_repo_string",
]
