"""
Assessment side: reading records back and judging system health.

Public API::

    from healthscope.analysis import (
        # Parsing
        parse_log_file,
        parse_debug_file,
        ParseResult,
        # Health
        correlate,
        aggregate,
        select_completed_run,
        # Divergence
        detect_divergences,
        classify_pattern,
        classify_severity,
        ExpectationLoader,
        # Assessment
        assess,
        identify_patterns,
        correlate_across_components,
        # Restoration
        RestorationRouter,
        RestorationRoute,
        # Pipeline
        run_assessment,
    )
"""

from healthscope.analysis.aggregator import aggregate, select_completed_run
from healthscope.analysis.assessment import AssessmentThresholds, assess
from healthscope.analysis.correlator import correlate
from healthscope.analysis.divergence import (
    ExpectationLoader,
    ExpectationTable,
    classify_pattern,
    classify_severity,
    detect_divergences,
    load_expectations,
)
from healthscope.analysis.parser import (
    ParseResult,
    parse_debug_file,
    parse_debug_text,
    parse_log_file,
    parse_log_text,
)
from healthscope.analysis.patterns import (
    compare_proposed_vs_actual,
    correlate_across_components,
    identify_patterns,
    is_systemic,
)
from healthscope.analysis.pipeline import AssessmentRun, run_assessment
from healthscope.analysis.report import (
    StructuredAssessment,
    render_text,
    to_json,
    to_structured,
    to_yaml,
)
from healthscope.analysis.restoration import RestorationRoute, RestorationRouter

__all__ = [
    # Parsing
    "ParseResult",
    "parse_log_file",
    "parse_log_text",
    "parse_debug_file",
    "parse_debug_text",
    # Health
    "correlate",
    "aggregate",
    "select_completed_run",
    # Divergence
    "detect_divergences",
    "classify_pattern",
    "classify_severity",
    "ExpectationLoader",
    "ExpectationTable",
    "load_expectations",
    # Assessment
    "AssessmentThresholds",
    "assess",
    "identify_patterns",
    "correlate_across_components",
    "compare_proposed_vs_actual",
    "is_systemic",
    # Report
    "StructuredAssessment",
    "render_text",
    "to_structured",
    "to_json",
    "to_yaml",
    # Restoration
    "RestorationRouter",
    "RestorationRoute",
    # Pipeline
    "AssessmentRun",
    "run_assessment",
]
