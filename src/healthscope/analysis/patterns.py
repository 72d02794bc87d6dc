"""
Failure pattern classification and cross-component correlation.

``identify_patterns`` reads the free-text issues of an assessment;
``correlate_across_components`` groups components by health classification
so a problem shared by several components can be told apart from an
isolated one.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from healthscope.analysis.assessment import AssessmentThresholds
from healthscope.models import ComponentHealth, SystemAssessment

# (substrings, pattern) pairs; any substring matches, case-insensitively
CRITICAL_ISSUE_PATTERNS: list[tuple[tuple[str, ...], str]] = [
    (("permission", "denied"), "permission_error"),
    (("not found", "missing"), "missing_resource"),
    (("syntax", "invalid"), "config_error"),
    (("failure rate exceeds",), "high_failure_rate"),
    (("critical health",), "critical_health"),
]

WARNING_PATTERNS: list[tuple[tuple[str, ...], str]] = [
    (("negative health",), "health_degradation"),
    (("multiple warnings",), "warning_accumulation"),
]


def _scan(
    texts: list[str],
    table: list[tuple[tuple[str, ...], str]],
    counts: dict[str, int],
) -> None:
    for text in texts:
        lowered = text.lower()
        for needles, pattern in table:
            if any(needle in lowered for needle in needles):
                counts[pattern] = counts.get(pattern, 0) + 1


def identify_patterns(assessment: SystemAssessment) -> dict[str, int]:
    """Count known failure patterns in critical issues and warnings."""
    counts: dict[str, int] = {}
    _scan(assessment.critical_issues, CRITICAL_ISSUE_PATTERNS, counts)
    _scan(assessment.warnings, WARNING_PATTERNS, counts)
    return counts


def correlate_across_components(
    components: Mapping[str, ComponentHealth],
    thresholds: Optional[AssessmentThresholds] = None,
) -> dict[str, list[str]]:
    """Issue type to the sorted names of the components showing it."""
    thresholds = thresholds or AssessmentThresholds()
    issues: dict[str, list[str]] = {}

    for name in sorted(components):
        comp = components[name]
        if comp.final_health < thresholds.critical:
            issues.setdefault("critical_health", []).append(name)
        elif comp.final_health < thresholds.degraded:
            issues.setdefault("degraded_health", []).append(name)
        if comp.failing:
            issues.setdefault("high_failure_rate", []).append(name)
        if comp.warning_count > thresholds.warning_count:
            issues.setdefault("warning_accumulation", []).append(name)

    return issues


def is_systemic(issue: str, correlations: Mapping[str, list[str]]) -> bool:
    """Whether ``issue`` affects more than one component."""
    return len(correlations.get(issue, [])) > 1


def compare_proposed_vs_actual(
    components: Mapping[str, ComponentHealth],
    thresholds: Optional[AssessmentThresholds] = None,
) -> dict[str, int]:
    """Count health trajectories that disagree with their success/failure mix."""
    thresholds = thresholds or AssessmentThresholds()
    counts: dict[str, int] = {}

    def bump(kind: str) -> None:
        counts[kind] = counts.get(kind, 0) + 1

    for comp in components.values():
        mostly_succeeded = comp.success_count > comp.failure_count
        if comp.final_health < 0 and mostly_succeeded:
            bump("unexpected_degradation")
        if comp.failure_count > 0 and mostly_succeeded and comp.final_health < thresholds.warning:
            bump("incomplete_recovery")
        if comp.check_count > 10 and comp.final_health == 0:
            bump("inconsistent_scoring")

    return counts
