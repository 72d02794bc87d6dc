"""
Pydantic models for health-scored records and derived assessments.

Two record streams are written by running components:

- ``LogRecord``: one health-scored event from a ``HealthEmitter``.
- ``InspectionRecord``: one state snapshot from a ``StateInspector``.

Everything else (``ComponentHealth``, ``HealthDivergence``,
``SystemAssessment``) is derived on each analysis run and never persisted.

The semantic taxonomy enums document the known vocabulary for restoration
routing.  Record fields accept plain strings so a value added by a newer
emitter is never rejected by an older analyzer.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Level(str, Enum):
    """Log record levels."""

    OPERATION = "OPERATION"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ERROR = "ERROR"
    CHECK = "CHECK"
    CONTEXT = "CONTEXT"
    SNAPSHOT = "SNAPSHOT"
    DEBUG = "DEBUG"
    WARNING = "WARNING"


class InspectionType(str, Enum):
    """State inspector entry types."""

    SNAPSHOT = "SNAPSHOT"
    EXPECTED_STATE = "EXPECTED_STATE"
    CONDITIONAL = "CONDITIONAL"
    TIMING = "TIMING"
    COUNTER = "COUNTER"
    CHECKPOINT = "CHECKPOINT"
    FLOW = "FLOW"
    CALLSTACK = "CALLSTACK"
    MEMORY = "MEMORY"
    SYSTEM_CONTEXT = "SYSTEM_CONTEXT"


class OperationType(str, Enum):
    FILE_VALIDATION = "file_validation"
    CONFIG_VALIDATION = "config_validation"
    SYSTEM_OPERATION = "system_operation"
    PARSING = "parsing"
    ANALYSIS = "analysis"
    IO_OPERATION = "io_operation"


class ErrorType(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    PERMISSION_DENIED = "permission_denied"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    MISSING_DEPENDENCY = "missing_dependency"
    TIMEOUT = "timeout"
    UNEXPECTED_VALUE = "unexpected_value"
    RESOURCE_EXHAUSTED = "resource_exhausted"


class RecoveryHint(str, Enum):
    AUTOMATED_FIX = "automated_fix"
    INSTALL_DEPENDENCY = "install_dependency"
    UPDATE_CONFIG = "update_config"
    RETRY = "retry"
    MANUAL_INTERVENTION = "manual_intervention"
    INVESTIGATE = "investigate"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DivergencePattern(str, Enum):
    COMPLETE_FAILURE = "complete-failure"
    PARTIAL_SUCCESS = "partial-success"
    UNEXPECTED_FAILURE = "unexpected-failure"
    OVER_PERFORMANCE = "over-performance"
    UNKNOWN = "unknown"


# Levels that mark the end of a run
TERMINAL_LEVELS = frozenset({Level.SUCCESS.value, Level.FAILURE.value})

# Levels compared against an expected health map
SCORED_LEVELS = frozenset(
    {Level.CHECK.value, Level.SUCCESS.value, Level.FAILURE.value}
)

SEVERITY_RANK = {
    Severity.CRITICAL.value: 0,
    Severity.HIGH.value: 1,
    Severity.MEDIUM.value: 2,
    Severity.LOW.value: 3,
}


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class SemanticMetadata(BaseModel):
    """Optional routing metadata attached to a record at emission time."""

    operation_type: str = ""
    operation_subtype: str = ""
    error_type: str = ""
    error_details: dict[str, Any] = Field(default_factory=dict)
    recovery_hint: str = ""
    recovery_strategy: str = ""
    recovery_params: dict[str, Any] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class LogRecord(BaseModel):
    """One emitted health-scored event."""

    timestamp: datetime
    level: str
    component: str
    user: str = ""
    context_id: str
    event: str = ""
    raw_health: int = 0
    normalized_health: int = 0
    health_impact: int = 0
    details: dict[str, Any] = Field(default_factory=dict)
    context: Optional[dict[str, Any]] = None
    semantic: Optional[SemanticMetadata] = None


class InspectionRecord(BaseModel):
    """One state inspector entry."""

    timestamp: datetime
    entry_type: str
    component: str
    user: str = ""
    context_id: str = Field(..., min_length=1)
    label: str = ""
    call_site: str = ""
    expected: Any = None
    actual: Any = None
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_expectation(self) -> bool:
        return "expected" in self.model_fields_set

    @property
    def matches(self) -> bool:
        """Whether the observed state matched the expectation.

        Evaluated here by the consumer; the inspector never compares.
        """
        return self.expected == self.actual


# ---------------------------------------------------------------------------
# Derived
# ---------------------------------------------------------------------------


class HealthDivergence(BaseModel):
    """Mismatch between a declared and an observed health impact."""

    model_config = ConfigDict(extra="forbid")

    component: str = ""
    check_name: str
    expected: int
    actual: int
    gap: int
    severity: str
    pattern: str
    operation_type: str = ""
    operation_subtype: str = ""
    error_type: str = ""
    error_details: dict[str, Any] = Field(default_factory=dict)
    recovery_hint: str = ""
    recovery_strategy: str = ""
    recovery_params: dict[str, Any] = Field(default_factory=dict)

    @property
    def routable(self) -> bool:
        return bool(self.recovery_hint or self.recovery_strategy or self.error_type)


class ComponentHealth(BaseModel):
    """Aggregated health of one component for one analysis run."""

    name: str
    records: list[LogRecord] = Field(default_factory=list)
    final_health: int = 0
    history: list[int] = Field(default_factory=list)
    check_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    warning_count: int = 0
    error_count: int = 0
    operation_count: int = 0
    divergences: list[HealthDivergence] = Field(default_factory=list)
    selected_context_id: Optional[str] = None

    @property
    def failing(self) -> bool:
        return self.failure_count > self.success_count and self.failure_count > 0


class CorrelatedContext(BaseModel):
    """Log and inspection records sharing one execution context id."""

    context_id: str
    component: str
    records: list[LogRecord] = Field(default_factory=list)
    inspections: list[InspectionRecord] = Field(default_factory=list)

    @property
    def mismatches(self) -> list[InspectionRecord]:
        return [i for i in self.inspections if i.has_expectation and not i.matches]


class SystemAssessment(BaseModel):
    """Top-level output of one analysis run."""

    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    overall_health: int = 0
    total_records: int = 0
    inspection_records: int = 0
    parse_errors: int = 0
    critical_issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    patterns: dict[str, int] = Field(default_factory=dict)
    cross_component_issues: dict[str, list[str]] = Field(default_factory=dict)
    divergence_summary: dict[str, int] = Field(default_factory=dict)
    correlated: dict[str, CorrelatedContext] = Field(default_factory=dict)
    analysis_time: datetime = Field(default_factory=datetime.now)

    @property
    def divergences(self) -> list[HealthDivergence]:
        return [
            div
            for name in sorted(self.components)
            for div in self.components[name].divergences
        ]

    @property
    def has_critical(self) -> bool:
        return len(self.critical_issues) > 0
