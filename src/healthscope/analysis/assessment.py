"""
Turn per-component health into a system assessment.

Thresholds (defaults; configurable through ``HEALTHSCOPE_*``)::

    final < -30          critical issue   "Critical health"
    -30 <= final < 0     warning          "Negative health"
    failures > successes critical issue   "Failure rate exceeds success rate"
    warnings > 5         warning          "Multiple warnings"
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from pydantic import BaseModel, Field

from healthscope.config import HealthScopeConfig
from healthscope.health import truncated_div
from healthscope.models import ComponentHealth, SystemAssessment

RECOMMEND_DIAGNOSE = "Run 'diagnose' command for detailed troubleshooting of critical issues"
RECOMMEND_NEGATIVE = "System health is negative - review component logs for failure patterns"
RECOMMEND_DEGRADED = (
    "System health is degraded - consider running 'validate' to check configuration"
)
RECOMMEND_ROUTES = (
    "{count} divergence(s) carry recovery metadata - review the restoration routes"
)


class AssessmentThresholds(BaseModel):
    """Health boundaries used to classify components."""

    critical: int = Field(default=-30, description="Below this is critical")
    degraded: int = Field(default=0, description="Below this is degraded")
    warning: int = Field(default=50, description="Overall below this is a concern")
    warning_count: int = Field(default=5, ge=0, description="Tolerated WARNING records")

    @classmethod
    def from_config(cls, config: HealthScopeConfig) -> "AssessmentThresholds":
        return cls(
            critical=config.critical_threshold,
            degraded=config.degraded_threshold,
            warning=config.warning_threshold,
            warning_count=config.warning_count_threshold,
        )


def overall_health(components: Mapping[str, ComponentHealth]) -> int:
    """Mean of final healths, truncated toward zero; 0 with no components."""
    if not components:
        return 0
    total = sum(comp.final_health for comp in components.values())
    return truncated_div(total, len(components))


def assess(
    components: Mapping[str, ComponentHealth],
    thresholds: Optional[AssessmentThresholds] = None,
) -> SystemAssessment:
    """Build issues, warnings and recommendations for ``components``."""
    thresholds = thresholds or AssessmentThresholds()
    assessment = SystemAssessment(components=dict(components))

    for name in sorted(components):
        comp = components[name]
        assessment.total_records += len(comp.records)

        if comp.final_health < thresholds.critical:
            assessment.critical_issues.append(
                f"{name}: Critical health ({comp.final_health}) - multiple failures detected"
            )
        elif comp.final_health < thresholds.degraded:
            assessment.warnings.append(
                f"{name}: Negative health ({comp.final_health}) - system degradation"
            )

        if comp.failing:
            assessment.critical_issues.append(
                f"{name}: Failure rate exceeds success rate "
                f"({comp.failure_count} failures vs {comp.success_count} successes)"
            )

        if comp.warning_count > thresholds.warning_count:
            assessment.warnings.append(
                f"{name}: Multiple warnings ({comp.warning_count}) - potential instability"
            )

    assessment.overall_health = overall_health(components)

    if assessment.critical_issues:
        assessment.recommendations.append(RECOMMEND_DIAGNOSE)
    if assessment.overall_health < thresholds.degraded:
        assessment.recommendations.append(RECOMMEND_NEGATIVE)
    elif assessment.overall_health < thresholds.warning:
        assessment.recommendations.append(RECOMMEND_DEGRADED)

    routable = [div for div in assessment.divergences if div.routable]
    if routable:
        assessment.recommendations.append(RECOMMEND_ROUTES.format(count=len(routable)))

    return assessment
