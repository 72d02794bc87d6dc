"""
Compare observed health impacts with a declared expected-health map.

An expected map is the scoring plan a component declares for itself::

    {"file-exists": 10, "syntax-ok": 30, "permissions-ok": 7}

Each CHECK, SUCCESS or FAILURE record whose event names a planned check is
compared with the plan.  Differences become ``HealthDivergence`` entries,
classified by severity (size of the gap) and pattern (shape of the gap).

Expected maps can be declared in YAML::

    components:
      validate:
        file-exists: 10
        syntax-ok: 30
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Optional

from pydantic import BaseModel, Field

from healthscope.config import HealthScopeConfig, get_config
from healthscope.emission.emitter import EVENT_CHECK
from healthscope.loader import BaseTableLoader
from healthscope.models import (
    DivergencePattern,
    HealthDivergence,
    LogRecord,
    SCORED_LEVELS,
    Severity,
)

logger = logging.getLogger(__name__)

CHECK_PREFIX = EVENT_CHECK.format("")

# Scoring plan of the healthscope CLI itself (see healthscope.cli)
SELF_COMPONENT = "healthscope"
SELF_EXPECTED_HEALTH: dict[str, int] = {
    "logger-initialized": 5,
    "arguments-parsed": 5,
    "log-directory-located": 3,
    "log-files-read": 10,
    "log-entries-parsed": 30,
    "component-health-aggregated": 20,
    "cross-component-correlation": 15,
    "pattern-identification": 15,
    "proposed-vs-actual-comparison": 5,
    "problems-classified": 8,
    "severity-determined": 5,
    "recommendations-generated": 8,
    "assessment-displayed": 3,
}
# Last record of every self-scored run, as SUCCESS or FAILURE
SELF_COMPLETION_EVENT = "System assessment complete"
SELF_COMPLETION_IMPACT = 2
SELF_HEALTH_TOTAL = sum(SELF_EXPECTED_HEALTH.values()) + SELF_COMPLETION_IMPACT

# One check per divergence pattern, for exercising the classifier end to end
DEMO_COMPONENT = "divergence-demo"
DEMO_EXPECTED_HEALTH: dict[str, int] = {
    "partial-success-test": 30,
    "complete-failure-test": 40,
    "unexpected-failure-test": 20,
    "perfect-match-test": 15,
    "over-performance-test": 10,
}

BUILTIN_EXPECTATIONS: dict[str, dict[str, int]] = {
    SELF_COMPONENT: SELF_EXPECTED_HEALTH,
    DEMO_COMPONENT: DEMO_EXPECTED_HEALTH,
}


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_severity(gap: int) -> str:
    """Severity from the magnitude of ``actual - expected``."""
    size = abs(gap)
    if size >= 20:
        return Severity.CRITICAL.value
    if size >= 10:
        return Severity.HIGH.value
    if size >= 5:
        return Severity.MEDIUM.value
    return Severity.LOW.value


def classify_pattern(expected: int, actual: int) -> str:
    """Shape of a divergence.  First matching rule wins."""
    if actual == 0 and expected > 0:
        return DivergencePattern.COMPLETE_FAILURE.value
    if 0 < actual < expected:
        return DivergencePattern.PARTIAL_SUCCESS.value
    if actual < 0 and expected > 0:
        return DivergencePattern.UNEXPECTED_FAILURE.value
    if actual > expected:
        return DivergencePattern.OVER_PERFORMANCE.value
    return DivergencePattern.UNKNOWN.value


def check_name(event: str) -> str:
    if event.startswith(CHECK_PREFIX):
        return event[len(CHECK_PREFIX):]
    return event


def detect_divergences(
    component: str,
    records: Sequence[LogRecord],
    expected_map: Mapping[str, int],
) -> list[HealthDivergence]:
    """Divergences between ``records`` and the declared ``expected_map``.

    A mismatch where both sides are negative is not reported.
    """
    if not expected_map:
        return []

    divergences: list[HealthDivergence] = []
    for record in records:
        if record.level not in SCORED_LEVELS or not record.event:
            continue
        name = check_name(record.event)
        if name not in expected_map:
            continue

        expected = expected_map[name]
        actual = record.health_impact
        if actual == expected or (actual < 0 and expected < 0):
            continue

        gap = actual - expected
        semantic = record.semantic.model_dump() if record.semantic is not None else {}
        divergences.append(
            HealthDivergence(
                component=component,
                check_name=name,
                expected=expected,
                actual=actual,
                gap=gap,
                severity=classify_severity(gap),
                pattern=classify_pattern(expected, actual),
                **semantic,
            )
        )
    return divergences


# ---------------------------------------------------------------------------
# Expectations table
# ---------------------------------------------------------------------------


class ExpectationTable(BaseModel):
    """Per-component expected health maps."""

    components: dict[str, dict[str, int]] = Field(default_factory=dict)

    def for_component(self, component: str) -> dict[str, int]:
        return dict(self.components.get(component, {}))

    def merged_over(self, base: Mapping[str, Mapping[str, int]]) -> "ExpectationTable":
        """A table with this table's checks layered over ``base``."""
        merged = {name: dict(checks) for name, checks in base.items()}
        for name, checks in self.components.items():
            merged.setdefault(name, {}).update(checks)
        return ExpectationTable(components=merged)


class ExpectationLoader(BaseTableLoader[ExpectationTable]):
    _model_class = ExpectationTable

    def _log_loaded(self, table: ExpectationTable, key: str) -> None:
        self._logger.debug(
            "Loaded expectations: %d components (%s)", len(table.components), key
        )


def load_expectations(config: Optional[HealthScopeConfig] = None) -> ExpectationTable:
    """Configured expectations merged over the built-in maps.

    Raises:
        ConfigurationError: If an expectations file is configured but unusable.
    """
    config = config or get_config()
    declared = ExpectationLoader().load_optional(config.expectations_file)
    if declared is None:
        return ExpectationTable().merged_over(BUILTIN_EXPECTATIONS)
    return declared.merged_over(BUILTIN_EXPECTATIONS)
