"""Branch-flow validation for multi-stage promotion models.

Rules are advisory: a head branch no rule matches is never a violation,
and the first rule whose pattern matches the head branch decides.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from pr_inbox.logging import get_logger
from pr_inbox.schemas.flow import FlowRule, FlowViolation

logger = get_logger(__name__)

DEFAULT_FLOW_RULES: tuple[FlowRule, ...] = (
    FlowRule(pattern="feature/*", allowed_targets=("develop",), phase="Development"),
    FlowRule(pattern="bugfix/*", allowed_targets=("develop",), phase="Development"),
    FlowRule(pattern="develop", allowed_targets=("release/*", "main"), phase="Integration"),
    FlowRule(pattern="release/*", allowed_targets=("main",), phase="Release"),
    FlowRule(pattern="hotfix/*", allowed_targets=("main",), phase="Hotfix"),
)


def matches_branch_pattern(branch: str, pattern: str) -> bool:
    """Match a branch name against an exact name or a trailing-``*`` prefix.

    ``*`` alone matches every branch. ``feature/*`` matches ``feature/x``
    and ``feature/a/b`` but not ``feature/`` itself. A ``*`` anywhere
    other than the end is taken literally.
    """
    if pattern == "*":
        return True
    if pattern.endswith("*") and "*" not in pattern[:-1]:
        prefix = pattern[:-1]
        return branch.startswith(prefix) and len(branch) > len(prefix)
    return branch == pattern


def find_rule(head_ref: str, rules: Sequence[FlowRule]) -> FlowRule | None:
    """First rule whose pattern matches the head branch."""
    for rule in rules:
        if matches_branch_pattern(head_ref, rule.pattern):
            return rule
    return None


def validate_pr_flow(
    head_ref: str,
    base_ref: str,
    rules: Sequence[FlowRule] = DEFAULT_FLOW_RULES,
) -> FlowViolation | None:
    """Check that a pull request targets an allowed next stage.

    Args:
        head_ref: Source branch
        base_ref: Target branch
        rules: Ordered promotion rules

    Returns:
        None when compliant, unconstrained or unmatched; otherwise the violation
    """
    rule = find_rule(head_ref, rules)
    if rule is None or not rule.allowed_targets:
        return None

    if any(matches_branch_pattern(base_ref, target) for target in rule.allowed_targets):
        return None

    expected = " or ".join(f'"{target}"' for target in rule.allowed_targets)
    return FlowViolation(
        head_ref=head_ref,
        base_ref=base_ref,
        expected_targets=list(rule.allowed_targets),
        message=f'Branch "{head_ref}" should target {expected}, but targets "{base_ref}"',
    )


def get_flow_phase(
    head_ref: str,
    base_ref: str,
    rules: Sequence[FlowRule] = DEFAULT_FLOW_RULES,
) -> str | None:
    """Phase label of the head branch's rule, or None when no rule matches.

    A rule without a ``phase`` is labelled by its pattern.

    ``base_ref`` does not affect the phase; a PR in the wrong direction is
    still in its head branch's phase and is reported through
    :func:`validate_pr_flow`.
    """
    rule = find_rule(head_ref, rules)
    if rule is None:
        return None
    return rule.phase or rule.pattern


def parse_flow_rules(value: Any) -> tuple[FlowRule, ...]:
    """Parse untrusted JSON into flow rules.

    Accepts a list of objects with ``pattern`` (or ``sourcePattern``),
    ``allowed_targets`` (or ``allowedTargets``) and an optional ``phase``.
    Malformed items are skipped; if nothing valid remains the defaults
    are returned.
    """
    if not isinstance(value, list):
        return DEFAULT_FLOW_RULES

    rules: list[FlowRule] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            continue
        pattern = item.get("pattern", item.get("sourcePattern"))
        targets = item.get("allowed_targets", item.get("allowedTargets"))
        if not isinstance(targets, list) or not all(isinstance(t, str) for t in targets):
            logger.debug("Skipping flow rule {}: allowed targets must be strings", index)
            continue
        try:
            rules.append(
                FlowRule(
                    pattern=pattern,
                    allowed_targets=tuple(t.strip() for t in targets if t.strip()),
                    phase=item.get("phase"),
                )
            )
        except ValidationError:
            logger.debug("Skipping malformed flow rule {}", index)

    return tuple(rules) if rules else DEFAULT_FLOW_RULES
