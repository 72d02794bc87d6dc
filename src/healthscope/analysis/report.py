"""
Render a ``SystemAssessment`` as text, JSON or YAML.

Text output is deterministic: components are listed worst health first
(ties by name) and every mapping is printed in sorted order, so two runs over
the same files produce the same report.

The structured form is what a downstream remediation tool consumes: health
per component plus every divergence with its full semantic and routing
fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import click
import yaml
from pydantic import BaseModel, Field

from healthscope.analysis.assessment import AssessmentThresholds
from healthscope.analysis.patterns import is_systemic
from healthscope.analysis.restoration import RestorationRoute
from healthscope.models import ComponentHealth, HealthDivergence, Severity, SystemAssessment

STATUS_HEALTHY = "Healthy"
STATUS_WARNING = "Warning"
STATUS_DEGRADED = "Degraded"

MAX_INLINE_PARAMS = 3


# ---------------------------------------------------------------------------
# Structured form
# ---------------------------------------------------------------------------


class ComponentSummary(BaseModel):
    final_health: int
    status: str
    checks: int = 0
    successes: int = 0
    failures: int = 0
    warnings: int = 0
    errors: int = 0
    operations: int = 0
    records: int = 0
    selected_context_id: Optional[str] = None


class InspectionMismatch(BaseModel):
    context_id: str
    component: str
    entry_type: str
    label: str
    call_site: str = ""
    expected: Any = None
    actual: Any = None


class StructuredAssessment(BaseModel):
    """Machine-consumable assessment record set."""

    analysis_time: datetime
    overall_health: int
    status: str
    total_records: int = 0
    inspection_records: int = 0
    parse_errors: int = 0
    components: dict[str, ComponentSummary] = Field(default_factory=dict)
    divergences: list[HealthDivergence] = Field(default_factory=list)
    routes: list[RestorationRoute] = Field(default_factory=list)
    critical_issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    patterns: dict[str, int] = Field(default_factory=dict)
    cross_component_issues: dict[str, list[str]] = Field(default_factory=dict)
    divergence_summary: dict[str, int] = Field(default_factory=dict)
    inspection_mismatches: list[InspectionMismatch] = Field(default_factory=list)


def health_status(health: int, thresholds: Optional[AssessmentThresholds] = None) -> str:
    thresholds = thresholds or AssessmentThresholds()
    if health < thresholds.degraded:
        return STATUS_DEGRADED
    if health < thresholds.warning:
        return STATUS_WARNING
    return STATUS_HEALTHY


def ordered_components(assessment: SystemAssessment) -> list[ComponentHealth]:
    """Components worst health first, ties broken by name."""
    return sorted(
        assessment.components.values(),
        key=lambda comp: (comp.final_health, comp.name),
    )


def to_structured(
    assessment: SystemAssessment,
    routes: Optional[list[RestorationRoute]] = None,
    thresholds: Optional[AssessmentThresholds] = None,
) -> StructuredAssessment:
    components = {
        comp.name: ComponentSummary(
            final_health=comp.final_health,
            status=health_status(comp.final_health, thresholds),
            checks=comp.check_count,
            successes=comp.success_count,
            failures=comp.failure_count,
            warnings=comp.warning_count,
            errors=comp.error_count,
            operations=comp.operation_count,
            records=len(comp.records),
            selected_context_id=comp.selected_context_id,
        )
        for comp in ordered_components(assessment)
    }
    mismatches = [
        InspectionMismatch(
            context_id=ctx.context_id,
            component=ctx.component,
            entry_type=inspection.entry_type,
            label=inspection.label,
            call_site=inspection.call_site,
            expected=inspection.expected,
            actual=inspection.actual,
        )
        for _, ctx in sorted(assessment.correlated.items())
        for inspection in ctx.mismatches
    ]
    return StructuredAssessment(
        analysis_time=assessment.analysis_time,
        overall_health=assessment.overall_health,
        status=health_status(assessment.overall_health, thresholds),
        total_records=assessment.total_records,
        inspection_records=assessment.inspection_records,
        parse_errors=assessment.parse_errors,
        components=components,
        divergences=assessment.divergences,
        routes=list(routes or []),
        critical_issues=list(assessment.critical_issues),
        warnings=list(assessment.warnings),
        recommendations=list(assessment.recommendations),
        patterns=dict(sorted(assessment.patterns.items())),
        cross_component_issues=dict(sorted(assessment.cross_component_issues.items())),
        divergence_summary=dict(sorted(assessment.divergence_summary.items())),
        inspection_mismatches=mismatches,
    )


def to_json(structured: StructuredAssessment) -> str:
    return structured.model_dump_json(indent=2)


def to_yaml(structured: StructuredAssessment) -> str:
    return yaml.safe_dump(
        structured.model_dump(mode="json"),
        sort_keys=False,
        allow_unicode=True,
    )


# ---------------------------------------------------------------------------
# Text form
# ---------------------------------------------------------------------------


class _Writer:
    def __init__(self, color: bool) -> None:
        self.color = color
        self.lines: list[str] = []

    def style(self, text: str, **styles: Any) -> str:
        return click.style(text, **styles) if self.color else text

    def line(self, text: str = "") -> None:
        self.lines.append(text)

    def section(self, title: str) -> None:
        self.line(self.style(f"── {title} ──", bold=True))

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


def _status_color(status: str) -> str:
    return {STATUS_DEGRADED: "red", STATUS_WARNING: "yellow"}.get(status, "green")


def _severity_color(severity: str) -> str:
    if severity in (Severity.CRITICAL.value, Severity.HIGH.value):
        return "red"
    return "yellow"


def _format_params(params: dict[str, Any]) -> str:
    items = [f"{key}={params[key]}" for key in sorted(params)]
    shown = ", ".join(items[:MAX_INLINE_PARAMS])
    if len(items) > MAX_INLINE_PARAMS:
        shown += f", ... ({len(items) - MAX_INLINE_PARAMS} more)"
    return shown


def render_text(
    assessment: SystemAssessment,
    routes: Optional[list[RestorationRoute]] = None,
    thresholds: Optional[AssessmentThresholds] = None,
    color: bool = False,
) -> str:
    """Human-readable report.  Identical input gives identical output."""
    out = _Writer(color)

    out.section("healthscope assessment")
    status = health_status(assessment.overall_health, thresholds)
    out.line(f"  Analysis Time: {assessment.analysis_time.strftime('%Y-%m-%d %H:%M:%S')}")
    out.line(f"  Components Analyzed: {len(assessment.components)}")
    out.line(f"  Total Log Records: {assessment.total_records}")
    out.line(f"  Inspection Records: {assessment.inspection_records}")
    if assessment.parse_errors:
        out.line(f"  Parse Errors: {assessment.parse_errors}")
    overall = out.style(str(assessment.overall_health), fg=_status_color(status))
    out.line(f"  Overall Health: {overall} ({status})")
    out.line()

    components = ordered_components(assessment)
    if components:
        out.section("Component Health")
        for comp in components:
            comp_status = health_status(comp.final_health, thresholds)
            health = out.style(f"{comp.final_health:4d}", fg=_status_color(comp_status))
            out.line(
                f"  {comp.name:<20} Health: {health} | Checks: {comp.check_count} "
                f"| Failures: {comp.failure_count} | Warnings: {comp.warning_count}"
            )
        out.line()

    for title, items, fg in (
        ("Critical Issues", assessment.critical_issues, "red"),
        ("Warnings", assessment.warnings, "yellow"),
        ("Recommendations", assessment.recommendations, "blue"),
    ):
        if items:
            out.section(title)
            for item in items:
                out.line("  " + out.style(item, fg=fg))
            out.line()

    with_inspections = [
        ctx for _, ctx in sorted(assessment.correlated.items()) if ctx.inspections
    ]
    if with_inspections:
        out.section("Inspection Correlation")
        for ctx in with_inspections:
            out.line(
                f"  - {ctx.context_id}: {ctx.component} "
                f"({len(ctx.inspections)} inspection records, "
                f"{len(ctx.mismatches)} mismatches)"
            )
            for inspection in ctx.mismatches:
                out.line(
                    f"      {inspection.label}: expected {inspection.expected!r}, "
                    f"actual {inspection.actual!r}"
                )
        out.line()

    if assessment.patterns:
        out.section("Pattern Analysis")
        for pattern, count in sorted(assessment.patterns.items(), key=lambda kv: (-kv[1], kv[0])):
            out.line(f"    {pattern:<25} Count: {count}")
        out.line()

    if assessment.cross_component_issues:
        out.section("Cross-Component Issues")
        for issue, names in sorted(assessment.cross_component_issues.items()):
            scope = "systemic" if is_systemic(issue, assessment.cross_component_issues) else "isolated"
            out.line(f"    {issue} affects {len(names)} component(s) ({scope}):")
            for name in names:
                out.line(f"      - {name}")
        out.line()

    diverging = [comp for comp in sorted(components, key=lambda c: c.name) if comp.divergences]
    if diverging:
        out.section("Health Divergence Analysis")
        for comp in diverging:
            out.line(f"  {comp.name}:")
            for div in comp.divergences:
                name = out.style(f"{div.check_name:<30}", fg=_severity_color(div.severity))
                out.line(
                    f"    {name} Expected: {div.expected:+d} | Actual: {div.actual:+d} "
                    f"| Gap: {div.gap:+d} | Severity: {div.severity} | Pattern: {div.pattern}"
                )
        out.line()

    if routes:
        out.section("Restoration Routing")
        for route in routes:
            mode = "automated" if route.automated else "manual"
            arrow = out.style("→", fg="green" if route.automated else "yellow")
            out.line(
                f"    {route.component}/{route.check_name} {arrow} {route.strategy} "
                f"[{route.priority}, {mode}, {route.source}]"
            )
            if route.recovery_hint:
                out.line(f"      Hint: {route.recovery_hint}")
            if route.params:
                out.line(f"      Params: {_format_params(route.params)}")
        out.line()

    if assessment.divergence_summary:
        out.section("Trajectory Divergences")
        for kind, count in sorted(assessment.divergence_summary.items()):
            out.line(f"    {kind:<25} Count: {count}")
        out.line()

    return out.text()
