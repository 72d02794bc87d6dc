"""
healthscope CLI - assess component health from emitted logs.

Usage:
    healthscope                       Assess every component
    healthscope --component validate  Assess one component
    healthscope --format json         Structured output for remediation tools

Exit codes:
    0  analysis completed, no critical issues
    1  critical issues found, or no log files to analyze

The command scores its own run through a ``HealthEmitter("healthscope")``,
so a later invocation can report how the previous one went.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from healthscope.analysis.divergence import (
    SELF_COMPLETION_EVENT,
    SELF_COMPLETION_IMPACT,
    SELF_COMPONENT,
    SELF_EXPECTED_HEALTH,
    SELF_HEALTH_TOTAL,
)
from healthscope.analysis.pipeline import run_assessment
from healthscope.analysis.report import render_text, to_json, to_structured, to_yaml
from healthscope.config import get_config
from healthscope.emission.emitter import HealthEmitter
from healthscope.emission.inspector import StateInspector

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    """Send healthscope's own diagnostics to stderr."""
    package_logger = logging.getLogger("healthscope")
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)


@click.command()
@click.option("--component", default=None, help="Restrict analysis to one component.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json", "yaml"]),
    default="text",
    help="Output format.",
)
@click.version_option(package_name="healthscope")
@click.pass_context
def main(ctx: click.Context, component: Optional[str], output_format: str) -> None:
    """Assess system health from health-scored component logs."""
    config = get_config()
    _configure_logging(config.log_level)

    emitter = HealthEmitter(SELF_COMPONENT, config=config)
    emitter.declare_health_total(SELF_HEALTH_TOTAL)
    emitter.check("logger-initialized", True, SELF_EXPECTED_HEALTH["logger-initialized"])
    emitter.check(
        "arguments-parsed",
        True,
        SELF_EXPECTED_HEALTH["arguments-parsed"],
        {"component": component or "all", "format": output_format},
    )

    inspector: Optional[StateInspector] = None
    if config.inspect:
        inspector = StateInspector.for_emitter(emitter)
        inspector.enable()

    try:
        run = run_assessment(
            config,
            component=component,
            emitter=emitter,
            inspector=inspector,
        )
    finally:
        if inspector is not None:
            inspector.close()

    if not run.has_input:
        target = f" for component '{component}'" if component else ""
        click.echo(
            click.style(f"No log files found{target} under {config.log_dir}", fg="yellow"),
            err=True,
        )
        emitter.failure(SELF_COMPLETION_EVENT, "no log files", -SELF_COMPLETION_IMPACT)
        ctx.exit(1)

    assessment = run.assessment
    if output_format == "text":
        click.echo(render_text(assessment, run.routes, run.thresholds, color=True), nl=False)
    else:
        structured = to_structured(assessment, run.routes, run.thresholds)
        click.echo(to_json(structured) if output_format == "json" else to_yaml(structured))
    emitter.check(
        "assessment-displayed", True, SELF_EXPECTED_HEALTH["assessment-displayed"]
    )

    if assessment.has_critical:
        emitter.failure(
            SELF_COMPLETION_EVENT,
            f"{len(assessment.critical_issues)} critical issue(s)",
            -SELF_COMPLETION_IMPACT,
            {"overall_health": assessment.overall_health},
        )
        ctx.exit(1)

    emitter.success(
        SELF_COMPLETION_EVENT,
        SELF_COMPLETION_IMPACT,
        {"overall_health": assessment.overall_health},
    )
    logger.debug("Assessment finished: overall=%d", assessment.overall_health)
