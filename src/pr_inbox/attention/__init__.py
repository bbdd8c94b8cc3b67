"""Attention scoring and branch-flow validation.

Pure functions only: nothing here touches the network or the database.
"""

from .flow import (
    DEFAULT_FLOW_RULES,
    get_flow_phase,
    matches_branch_pattern,
    parse_flow_rules,
    validate_pr_flow,
)
from .scoring import (
    build_attention_input,
    build_attention_state,
    calculate_urgency_score,
    count_mentions,
    derive_attention_reason,
    score_attention,
)

__all__ = [
    # Flow
    "DEFAULT_FLOW_RULES",
    "get_flow_phase",
    "matches_branch_pattern",
    "parse_flow_rules",
    "validate_pr_flow",
    # Scoring
    "build_attention_input",
    "build_attention_state",
    "calculate_urgency_score",
    "count_mentions",
    "derive_attention_reason",
    "score_attention",
]
