"""
Linear batch assessment over the files under the configured directories.

    discover -> parse -> correlate -> aggregate -> detect divergences
             -> assess -> patterns -> cross-component -> route

No stage aborts the run: unreadable files and malformed records shrink the
input, they never stop the pipeline.

When an emitter is passed, each stage reports a scored CHECK through it.
The ``healthscope`` CLI uses this to grade its own runs against
``SELF_EXPECTED_HEALTH`` on the next invocation.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from healthscope.analysis.aggregator import aggregate
from healthscope.analysis.assessment import AssessmentThresholds, assess
from healthscope.analysis.correlator import correlate
from healthscope.analysis.divergence import (
    BUILTIN_EXPECTATIONS,
    SELF_COMPLETION_EVENT,
    ExpectationTable,
    detect_divergences,
    load_expectations,
)
from healthscope.analysis.parser import ParseResult, parse_debug_file, parse_log_file
from healthscope.analysis.patterns import (
    compare_proposed_vs_actual,
    correlate_across_components,
    identify_patterns,
)
from healthscope.analysis.restoration import RestorationRoute, RestorationRouter
from healthscope.config import HealthScopeConfig, get_config
from healthscope.loader import ConfigurationError
from healthscope.models import ComponentHealth, InspectionRecord, LogRecord, SystemAssessment

if TYPE_CHECKING:
    from healthscope.emission.emitter import HealthEmitter
    from healthscope.emission.inspector import StateInspector

logger = logging.getLogger(__name__)

STAGE_FAILURE_IMPACT = -10


@dataclass
class AssessmentRun:
    """Everything one pipeline run produced."""

    assessment: SystemAssessment
    routes: list[RestorationRoute] = field(default_factory=list)
    log_files: list[Path] = field(default_factory=list)
    debug_files: list[Path] = field(default_factory=list)
    thresholds: AssessmentThresholds = field(default_factory=AssessmentThresholds)

    @property
    def has_input(self) -> bool:
        return bool(self.log_files)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_log_files(
    config: HealthScopeConfig,
    component: Optional[str] = None,
) -> list[Path]:
    """Log files under ``log_dir``, oldest rotation first within a component."""
    root = config.get_log_path()
    if not root.is_dir():
        return []

    ext = config.log_file_extension
    pattern = re.compile(rf"^(?P<component>.+){re.escape(ext)}(?:\.(?P<index>\d+))?$")
    found: list[tuple[str, str, int, Path]] = []
    for path in root.rglob(f"*{ext}*"):
        match = pattern.match(path.name)
        if match is None or not path.is_file():
            continue
        name = match.group("component")
        if component is not None and name != component:
            continue
        index = int(match.group("index") or 0)
        found.append((name, str(path.parent), -index, path))

    found.sort(key=lambda item: (item[0], item[1], item[2]))
    return [item[3] for item in found]


def discover_debug_files(
    config: HealthScopeConfig,
    component: Optional[str] = None,
) -> list[Path]:
    root = config.get_debug_path(component)
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob(f"*{config.debug_file_extension}") if p.is_file())


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class _StageReporter:
    """Scored CHECK per stage, when an emitter is attached."""

    def __init__(self, emitter: Optional["HealthEmitter"], expected: dict[str, int]) -> None:
        self.emitter = emitter
        self.expected = expected

    def passed(self, stage: str, impact: Optional[int] = None, **details: object) -> None:
        if self.emitter is None:
            return
        if impact is None:
            impact = self.expected.get(stage, 0)
        self.emitter.check(stage, True, impact, dict(details))

    def failed(self, stage: str, **details: object) -> None:
        if self.emitter is None:
            return
        self.emitter.check(stage, False, STAGE_FAILURE_IMPACT, dict(details))


def _load_expectations(config: HealthScopeConfig) -> ExpectationTable:
    try:
        return load_expectations(config)
    except ConfigurationError as exc:
        logger.warning("Falling back to built-in expectations: %s", exc)
        return ExpectationTable().merged_over(BUILTIN_EXPECTATIONS)


def _parsed_share(records: int, errors: int, weight: int) -> int:
    """``weight`` scaled by the fraction of well-formed records."""
    seen = records + errors
    if seen == 0:
        return weight
    return weight * records // seen


def run_assessment(
    config: Optional[HealthScopeConfig] = None,
    component: Optional[str] = None,
    expectations: Optional[ExpectationTable] = None,
    router: Optional[RestorationRouter] = None,
    emitter: Optional["HealthEmitter"] = None,
    inspector: Optional["StateInspector"] = None,
) -> AssessmentRun:
    """Assess every component log (or only ``component``) once."""
    config = config or get_config()
    thresholds = AssessmentThresholds.from_config(config)
    if expectations is None:
        expectations = _load_expectations(config)
    router = router or RestorationRouter()

    self_component = emitter.component if emitter is not None else None
    current_context_id = emitter.context_id if emitter is not None else None
    stages = _StageReporter(
        emitter, expectations.for_component(self_component) if self_component else {}
    )

    # Discover
    log_root = config.get_log_path()
    if log_root.is_dir():
        stages.passed("log-directory-located", path=str(log_root))
    else:
        stages.failed("log-directory-located", path=str(log_root))

    log_files = discover_log_files(config, component)
    debug_files = discover_debug_files(config, component)
    if inspector is not None:
        inspector.checkpoint(
            "files-discovered",
            {"log_files": len(log_files), "debug_files": len(debug_files)},
        )

    # Parse; the run in progress is not part of its own input
    logs: ParseResult[LogRecord] = ParseResult()
    for path in log_files:
        logs.extend(parse_log_file(path))
    inspections: ParseResult[InspectionRecord] = ParseResult()
    for path in debug_files:
        inspections.extend(parse_debug_file(path))
    if current_context_id is not None:
        logs.records = [r for r in logs.records if r.context_id != current_context_id]
        inspections.records = [
            r for r in inspections.records if r.context_id != current_context_id
        ]

    if not logs.records and logs.error_count == 0:
        stages.failed("log-files-read", files=len(log_files))
        logger.info("No log records under %s", log_root)
        return AssessmentRun(
            assessment=SystemAssessment(),
            debug_files=debug_files,
            thresholds=thresholds,
        )
    stages.passed("log-files-read", files=len(log_files))

    parse_errors = logs.error_count + inspections.error_count
    if inspector is not None:
        inspector.expected_state("parse-errors", 0, parse_errors)
    stages.passed(
        "log-entries-parsed",
        _parsed_share(len(logs.records), logs.error_count, stages.expected.get("log-entries-parsed", 0)),
        records=len(logs.records),
        errors=parse_errors,
    )

    # Correlate and aggregate
    correlated = correlate(logs.records, inspections.records)
    by_component: dict[str, list[LogRecord]] = {}
    for record in logs.records:
        by_component.setdefault(record.component, []).append(record)

    components: dict[str, ComponentHealth] = {}
    for name in sorted(by_component):
        health = aggregate(
            name,
            by_component[name],
            self_component=self_component,
            current_context_id=current_context_id,
            completion_event=SELF_COMPLETION_EVENT,
        )
        health.divergences = detect_divergences(
            name, health.records, expectations.for_component(name)
        )
        components[name] = health
    stages.passed("component-health-aggregated", components=len(components))

    # Assess
    assessment = assess(components, thresholds)
    assessment.inspection_records = len(inspections.records)
    assessment.parse_errors = parse_errors
    assessment.correlated = correlated
    stages.passed("problems-classified", critical=len(assessment.critical_issues))
    stages.passed("severity-determined", warnings=len(assessment.warnings))
    stages.passed("recommendations-generated", recommendations=len(assessment.recommendations))

    assessment.cross_component_issues = correlate_across_components(components, thresholds)
    stages.passed("cross-component-correlation", issues=len(assessment.cross_component_issues))

    assessment.patterns = identify_patterns(assessment)
    stages.passed("pattern-identification", patterns=len(assessment.patterns))

    assessment.divergence_summary = compare_proposed_vs_actual(components, thresholds)
    stages.passed("proposed-vs-actual-comparison", divergences=sum(assessment.divergence_summary.values()))

    routes = router.route_all(assessment)
    logger.debug(
        "Assessed %d components: overall=%d, critical=%d, routes=%d",
        len(components),
        assessment.overall_health,
        len(assessment.critical_issues),
        len(routes),
    )
    return AssessmentRun(
        assessment=assessment,
        routes=routes,
        log_files=log_files,
        debug_files=debug_files,
        thresholds=thresholds,
    )
