"""End-to-end tests for the assessment pipeline, driven through real files."""

from healthscope.analysis.divergence import (
    SELF_COMPLETION_EVENT,
    SELF_HEALTH_TOTAL,
    ExpectationTable,
)
from healthscope.analysis.pipeline import (
    discover_debug_files,
    discover_log_files,
    run_assessment,
)
from healthscope.analysis.parser import parse_log_file
from healthscope.config import HealthScopeConfig
from healthscope.emission.emitter import HealthEmitter
from healthscope.emission.inspector import StateInspector
from healthscope.models import SemanticMetadata

VALIDATE_PLAN = {"file-exists": 10, "syntax-ok": 30, "permissions-ok": 7}


def _healthy_validate(config):
    emitter = HealthEmitter("validate", config=config)
    emitter.declare_health_total(47)
    emitter.check("file-exists", True, 10)
    emitter.check("syntax-ok", True, 30)
    emitter.success("permissions-ok", 7)
    return emitter


def _broken_validate(config):
    emitter = HealthEmitter("validate", config=config)
    emitter.declare_health_total(47)
    emitter.check("file-exists", True, 10)
    emitter.failure(
        "syntax-ok",
        "unbalanced brace",
        -30,
        semantic=SemanticMetadata(error_type="parse_error", error_details={"line": 12}),
    )
    return emitter


class TestDiscovery:
    def test_rotation_order(self, config, log_dir):
        commands = log_dir / "commands"
        scripts = log_dir / "scripts"
        commands.mkdir(parents=True)
        scripts.mkdir(parents=True)
        for name in ("validate.log", "validate.log.1", "validate.log.2", "notes.txt"):
            (commands / name).write_text("")
        (scripts / "build.log").write_text("")

        found = [p.relative_to(log_dir).as_posix() for p in discover_log_files(config)]
        assert found == [
            "scripts/build.log",
            "commands/validate.log.2",
            "commands/validate.log.1",
            "commands/validate.log",
        ]

    def test_component_filter(self, config, log_dir):
        (log_dir / "commands").mkdir(parents=True)
        (log_dir / "commands" / "validate.log").write_text("")
        (log_dir / "commands" / "status.log").write_text("")
        assert [p.name for p in discover_log_files(config, "status")] == ["status.log"]

    def test_custom_bucket_is_found(self, tmp_path, log_dir):
        routing = tmp_path / "routing.yaml"
        routing.write_text("buckets:\n  ops: [deploy]\ndefault_bucket: misc\n")
        config = HealthScopeConfig(log_dir=str(log_dir), routing_file=str(routing))
        HealthEmitter("deploy", config=config).success("pushed", 5)
        HealthEmitter("other", config=config).success("ran", 5)
        found = [p.relative_to(log_dir).as_posix() for p in discover_log_files(config)]
        assert found == ["ops/deploy.log", "misc/other.log"]

    def test_missing_directories(self, config):
        assert discover_log_files(config) == []
        assert discover_debug_files(config) == []

    def test_debug_files(self, config):
        with StateInspector("validate", config=config) as inspector:
            inspector.checkpoint("x")
        assert discover_debug_files(config) == [inspector.debug_file]
        assert discover_debug_files(config, "build") == []


class TestRunAssessment:
    def test_no_input(self, config):
        run = run_assessment(config)
        assert not run.has_input
        assert run.assessment.components == {}

    def test_healthy_component(self, config):
        _healthy_validate(config)
        run = run_assessment(config, expectations=ExpectationTable(components={"validate": VALIDATE_PLAN}))
        assert run.has_input
        validate = run.assessment.components["validate"]
        assert validate.final_health == 100
        assert validate.history == [21, 85, 100]
        assert validate.divergences == []
        assert run.assessment.overall_health == 100
        assert not run.assessment.has_critical
        assert run.routes == []

    def test_divergence_is_detected_and_routed(self, config):
        _broken_validate(config)
        run = run_assessment(config, expectations=ExpectationTable(components={"validate": VALIDATE_PLAN}))
        (div,) = run.assessment.components["validate"].divergences
        assert (div.check_name, div.gap, div.severity) == ("syntax-ok", -60, "critical")
        assert div.pattern == "unexpected-failure"
        (route,) = run.routes
        assert route.strategy == "repair_syntax"
        assert route.params == {"line": 12}

    def test_critical_component(self, config):
        emitter = HealthEmitter("deploy", config=config)
        emitter.declare_health_total(10)
        emitter.failure("push", "rejected", -10)
        emitter.failure("retry", "rejected", -10)
        run = run_assessment(config)
        assert run.assessment.has_critical
        assert run.assessment.patterns["critical_health"] == 1
        assert run.assessment.cross_component_issues["critical_health"] == ["deploy"]

    def test_component_filter(self, config):
        _healthy_validate(config)
        HealthEmitter("build", config=config).failure("compile", "boom", -5)
        run = run_assessment(config, component="build")
        assert list(run.assessment.components) == ["build"]

    def test_parse_errors_are_counted(self, config):
        emitter = _healthy_validate(config)
        with open(emitter.log_file, "a", encoding="utf-8") as fh:
            fh.write("not a record\n")
        run = run_assessment(config)
        assert run.assessment.parse_errors == 1
        assert run.assessment.total_records == 3

    def test_only_malformed_input_still_counts(self, config, log_dir):
        path = log_dir / "commands" / "validate.log"
        path.parent.mkdir(parents=True)
        path.write_text("garbage\n")
        run = run_assessment(config)
        assert run.has_input
        assert run.assessment.parse_errors == 1
        assert run.assessment.components == {}

    def test_inspections_are_correlated(self, config):
        emitter = _healthy_validate(config)
        with StateInspector.for_emitter(emitter) as inspector:
            inspector.expected_state("keys", expected=3, actual=2)
        run = run_assessment(config)
        ctx = run.assessment.correlated[emitter.context_id]
        assert len(ctx.records) == 3
        assert len(ctx.mismatches) == 1
        assert run.assessment.inspection_records == 1

    def test_bad_expectations_file_falls_back(self, tmp_path):
        path = tmp_path / "expectations.yaml"
        path.write_text("- not a mapping\n")
        config = HealthScopeConfig(expectations_file=str(path))
        _broken_validate(config)
        run = run_assessment(config)
        assert run.assessment.components["validate"].divergences == []


class TestSelfAnalysis:
    def _run(self, config):
        emitter = HealthEmitter("healthscope", config=config)
        emitter.declare_health_total(SELF_HEALTH_TOTAL)
        run = run_assessment(config, emitter=emitter)
        return emitter, run

    def test_current_run_is_not_its_own_input(self, config):
        emitter, run = self._run(config)
        assert not run.has_input
        checks = [r.event for r in parse_log_file(emitter.log_file).records]
        assert checks == [
            "Checking: log-directory-located",
            "Checking: log-files-read",
        ]

    def test_stage_checks_are_scored(self, config):
        _healthy_validate(config)
        emitter, run = self._run(config)
        records = parse_log_file(emitter.log_file).records
        impacts = {r.event: r.health_impact for r in records}
        assert impacts["Checking: log-files-read"] == 10
        assert impacts["Checking: log-entries-parsed"] == 30
        assert impacts["Checking: recommendations-generated"] == 8
        assert "healthscope" not in run.assessment.components

    def test_previous_run_is_graded(self, config):
        _healthy_validate(config)
        first, _ = self._run(config)
        first.success("System assessment complete", 2)

        second, run = self._run(config)
        health = run.assessment.components["healthscope"]
        assert health.selected_context_id == first.context_id
        assert health.divergences == []
        assert all(r.context_id == first.context_id for r in health.records)

    def test_run_ending_on_other_success_is_not_complete(self, config):
        _healthy_validate(config)
        first, _ = self._run(config)
        first.success(SELF_COMPLETION_EVENT, 2)
        interrupted, _ = self._run(config)
        interrupted.success("partial-report-written", 1)

        _, run = self._run(config)
        health = run.assessment.components["healthscope"]
        assert health.selected_context_id == first.context_id

    def test_previous_run_failures_diverge(self, config):
        _healthy_validate(config)
        earlier = HealthEmitter("healthscope", config=config)
        earlier.check("log-files-read", False, -10)
        earlier.failure("System assessment complete", "crashed", -2)

        _, run = self._run(config)
        (div,) = run.assessment.components["healthscope"].divergences
        assert div.check_name == "log-files-read"
        assert div.gap == -20
        assert div.pattern == "unexpected-failure"
