"""Tests for the system assessment."""

import pytest

from healthscope.analysis.assessment import (
    RECOMMEND_DEGRADED,
    RECOMMEND_DIAGNOSE,
    RECOMMEND_NEGATIVE,
    AssessmentThresholds,
    assess,
    overall_health,
)
from healthscope.config import HealthScopeConfig
from healthscope.models import ComponentHealth, HealthDivergence


def _component(name, final_health=100, **counts):
    return ComponentHealth(name=name, final_health=final_health, **counts)


class TestOverallHealth:
    def test_truncated_mean(self):
        components = {
            "a": _component("a", 100),
            "b": _component("b", -45),
            "c": _component("c", 0),
        }
        assert overall_health(components) == 18

    def test_negative_mean_truncates_toward_zero(self):
        components = {"a": _component("a", -10), "b": _component("b", -5)}
        assert overall_health(components) == -7

    def test_no_components(self):
        assert overall_health({}) == 0


class TestAssess:
    def test_healthy_system(self):
        assessment = assess({"validate": _component("validate", 100, success_count=3)})
        assert assessment.overall_health == 100
        assert assessment.critical_issues == []
        assert assessment.warnings == []
        assert assessment.recommendations == []
        assert not assessment.has_critical

    def test_critical_health(self):
        assessment = assess({"deploy": _component("deploy", -40)})
        assert assessment.critical_issues == [
            "deploy: Critical health (-40) - multiple failures detected"
        ]
        assert RECOMMEND_DIAGNOSE in assessment.recommendations
        assert RECOMMEND_NEGATIVE in assessment.recommendations

    def test_boundary_is_not_critical(self):
        assessment = assess({"deploy": _component("deploy", -30)})
        assert assessment.critical_issues == []
        assert assessment.warnings == [
            "deploy: Negative health (-30) - system degradation"
        ]

    def test_failure_rate(self):
        comp = _component("build", 60, failure_count=3, success_count=1)
        assessment = assess({"build": comp})
        assert assessment.critical_issues == [
            "build: Failure rate exceeds success rate (3 failures vs 1 successes)"
        ]

    def test_multiple_warnings(self):
        assessment = assess({"sync": _component("sync", 90, warning_count=6)})
        assert assessment.warnings == [
            "sync: Multiple warnings (6) - potential instability"
        ]
        assert assess({"sync": _component("sync", 90, warning_count=5)}).warnings == []

    def test_degraded_recommendation(self):
        assessment = assess({"a": _component("a", 40)})
        assert assessment.recommendations == [RECOMMEND_DEGRADED]

    def test_issues_follow_component_name_order(self):
        components = {
            "zeta": _component("zeta", -50),
            "alpha": _component("alpha", -60),
        }
        issues = assess(components).critical_issues
        assert issues[0].startswith("alpha:")
        assert issues[1].startswith("zeta:")

    def test_total_records(self, make_record):
        comp = _component("validate", 100)
        comp.records = [make_record("CHECK"), make_record("SUCCESS")]
        assert assess({"validate": comp}).total_records == 2

    def test_routable_divergences_add_recommendation(self):
        comp = _component("validate", 100)
        comp.divergences = [
            HealthDivergence(
                component="validate",
                check_name="syntax-ok",
                expected=30,
                actual=-30,
                gap=-60,
                severity="critical",
                pattern="unexpected-failure",
                error_type="parse_error",
            )
        ]
        recommendations = assess({"validate": comp}).recommendations
        assert recommendations[-1].startswith("1 divergence(s)")

    @pytest.mark.parametrize("final, critical", [(-20, True), (-5, False)])
    def test_thresholds_from_config(self, final, critical):
        thresholds = AssessmentThresholds.from_config(HealthScopeConfig(critical_threshold=-10))
        assessment = assess({"a": _component("a", final)}, thresholds)
        assert assessment.has_critical is critical
