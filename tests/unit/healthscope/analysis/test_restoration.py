"""Tests for restoration routing."""

from healthscope.analysis.restoration import RestorationRouter
from healthscope.models import ComponentHealth, HealthDivergence, SystemAssessment


def _divergence(check="syntax-ok", component="validate", severity="critical", **semantic):
    return HealthDivergence(
        component=component,
        check_name=check,
        expected=30,
        actual=-30,
        gap=-60,
        severity=severity,
        pattern="unexpected-failure",
        **semantic,
    )


class TestRoute:
    def test_derived_from_error_type(self):
        route = RestorationRouter().route(
            _divergence(error_type="parse_error", error_details={"line": 12})
        )
        assert route.strategy == "repair_syntax"
        assert route.recovery_hint == "manual_intervention"
        assert route.params == {"line": 12}
        assert not route.automated
        assert route.priority == "critical"
        assert route.source == "derived"

    def test_derived_from_hint(self):
        route = RestorationRouter().route(_divergence(recovery_hint="retry"))
        assert route.strategy == "retry_operation"
        assert route.automated

    def test_declared_strategy_wins(self):
        route = RestorationRouter({"parse_error": "custom"}).route(
            _divergence(
                error_type="parse_error",
                recovery_strategy="reformat_yaml",
                recovery_params={"indent": 2},
                recovery_hint="automated_fix",
            )
        )
        assert route.strategy == "reformat_yaml"
        assert route.params == {"indent": 2}
        assert route.automated
        assert route.source == "declared"

    def test_override_by_error_type_then_hint(self):
        router = RestorationRouter({"timeout": "page_oncall", "retry": "retry_later"})
        assert router.route(_divergence(error_type="timeout")).strategy == "page_oncall"
        assert router.route(_divergence(recovery_hint="retry")).strategy == "retry_later"

    def test_hint_overrides_implied_hint(self):
        route = RestorationRouter().route(
            _divergence(error_type="file_not_found", recovery_hint="investigate")
        )
        assert route.strategy == "restore_missing_file"
        assert route.recovery_hint == "investigate"
        assert not route.automated

    def test_recovery_params_override_error_details(self):
        route = RestorationRouter().route(
            _divergence(
                error_type="file_not_found",
                error_details={"path": "/a", "mode": "r"},
                recovery_params={"path": "/b"},
            )
        )
        assert route.params == {"path": "/b", "mode": "r"}

    def test_unroutable(self):
        assert RestorationRouter().route(_divergence()) is None
        assert RestorationRouter().route(_divergence(error_type="cosmic_ray")) is None


class TestRouteAll:
    def test_ordered_by_severity_then_name(self):
        validate = ComponentHealth(
            name="validate",
            divergences=[
                _divergence("b-check", severity="medium", error_type="timeout"),
                _divergence("a-check", severity="critical", error_type="timeout"),
                _divergence("plain", severity="critical"),
            ],
        )
        build = ComponentHealth(
            name="build",
            divergences=[_divergence("z", component="build", severity="critical", error_type="timeout")],
        )
        assessment = SystemAssessment(components={"validate": validate, "build": build})
        routes = RestorationRouter().route_all(assessment)
        assert [(r.component, r.check_name) for r in routes] == [
            ("build", "z"),
            ("validate", "a-check"),
            ("validate", "b-check"),
        ]

    def test_nothing_to_route(self):
        assert RestorationRouter().route_all(SystemAssessment()) == []
