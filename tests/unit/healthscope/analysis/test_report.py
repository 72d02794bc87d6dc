"""Tests for assessment rendering."""

import json
from datetime import datetime

import yaml

from healthscope.analysis.assessment import assess
from healthscope.analysis.report import (
    health_status,
    ordered_components,
    render_text,
    to_json,
    to_structured,
    to_yaml,
)
from healthscope.analysis.restoration import RestorationRouter
from healthscope.models import (
    ComponentHealth,
    CorrelatedContext,
    HealthDivergence,
    InspectionRecord,
)


def _assessment():
    components = {
        "validate": ComponentHealth(
            name="validate",
            final_health=-60,
            check_count=2,
            failure_count=1,
            success_count=1,
            divergences=[
                HealthDivergence(
                    component="validate",
                    check_name="syntax-ok",
                    expected=30,
                    actual=-30,
                    gap=-60,
                    severity="critical",
                    pattern="unexpected-failure",
                    error_type="parse_error",
                    error_details={"file": "/etc/app.yaml", "line": 12},
                )
            ],
        ),
        "build": ComponentHealth(name="build", final_health=100, success_count=4),
        "alpha": ComponentHealth(name="alpha", final_health=100, success_count=1),
    }
    assessment = assess(components)
    assessment.analysis_time = datetime(2026, 1, 2, 15, 4, 5)
    assessment.patterns = {"critical_health": 1}
    assessment.cross_component_issues = {"critical_health": ["validate"]}
    assessment.divergence_summary = {"incomplete_recovery": 1}
    inspection = InspectionRecord(
        timestamp=datetime(2026, 1, 2, 15, 4, 5),
        entry_type="EXPECTED_STATE",
        component="validate",
        context_id="validate-1-100",
        label="config-loaded",
        expected=3,
        actual=2,
    )
    assessment.correlated = {
        "validate-1-100": CorrelatedContext(
            context_id="validate-1-100", component="validate", inspections=[inspection]
        )
    }
    return assessment


class TestOrdering:
    def test_worst_first_ties_by_name(self):
        names = [comp.name for comp in ordered_components(_assessment())]
        assert names == ["validate", "alpha", "build"]

    def test_health_status(self):
        assert health_status(100) == "Healthy"
        assert health_status(49) == "Warning"
        assert health_status(-1) == "Degraded"


class TestText:
    def test_sections(self):
        assessment = _assessment()
        routes = RestorationRouter().route_all(assessment)
        text = render_text(assessment, routes)
        for title in (
            "Component Health",
            "Critical Issues",
            "Recommendations",
            "Inspection Correlation",
            "Pattern Analysis",
            "Cross-Component Issues",
            "Health Divergence Analysis",
            "Restoration Routing",
            "Trajectory Divergences",
        ):
            assert f"── {title} ──" in text
        assert "Overall Health: 46 (Warning)" in text
        assert "syntax-ok" in text
        assert "validate/syntax-ok → repair_syntax [critical, manual, derived]" in text
        assert "config-loaded: expected 3, actual 2" in text
        assert "critical_health affects 1 component(s) (isolated):" in text
        assert "\x1b[" not in text

    def test_component_lines_follow_order(self):
        text = render_text(_assessment())
        positions = [text.index(f"  {name:<20} Health:") for name in ("validate", "alpha", "build")]
        assert positions == sorted(positions)

    def test_deterministic(self):
        assessment = _assessment()
        routes = RestorationRouter().route_all(assessment)
        assert render_text(assessment, routes) == render_text(assessment, routes)

    def test_color(self):
        assert "\x1b[" in render_text(_assessment(), color=True)

    def test_quiet_sections_are_omitted(self):
        healthy = assess({"a": ComponentHealth(name="a", final_health=100)})
        text = render_text(healthy)
        assert "Critical Issues" not in text
        assert "Restoration Routing" not in text


class TestStructured:
    def test_json(self):
        assessment = _assessment()
        routes = RestorationRouter().route_all(assessment)
        data = json.loads(to_json(to_structured(assessment, routes)))
        assert list(data["components"]) == ["validate", "alpha", "build"]
        assert data["components"]["validate"]["status"] == "Degraded"
        assert data["overall_health"] == 46
        (divergence,) = data["divergences"]
        assert divergence["error_details"] == {"file": "/etc/app.yaml", "line": 12}
        assert data["routes"][0]["strategy"] == "repair_syntax"
        assert data["inspection_mismatches"][0]["label"] == "config-loaded"

    def test_yaml(self):
        structured = to_structured(_assessment())
        data = yaml.safe_load(to_yaml(structured))
        assert data["components"]["build"]["final_health"] == 100
        assert data["routes"] == []
        assert data["critical_issues"]
