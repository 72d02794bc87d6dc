"""
Health-scored event emitter.

One ``HealthEmitter`` per running component.  Each call appends exactly one
record to the component's log file and folds the call's health impact into
the emitter's running session health.

Emission never fails observably: an unwritable log is reported through
``logging`` and the call returns normally, so observability cannot break
the workflow being observed.

Usage::

    from healthscope.emission import HealthEmitter
    from healthscope.models import SemanticMetadata

    emitter = HealthEmitter("validate")
    emitter.declare_health_total(47)
    emitter.check("file-exists", True, 10)
    emitter.failure(
        "syntax-ok",
        "unbalanced brace",
        -30,
        semantic=SemanticMetadata(
            operation_type="file_validation",
            error_type="parse_error",
            recovery_hint="manual_intervention",
        ),
    )
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from healthscope.config import HealthScopeConfig, get_config
from healthscope.emission.context import capture_full, capture_partial, user_identifier
from healthscope.emission.wire import append_block, format_log_record
from healthscope.health import normalize_health
from healthscope.models import Level, LogRecord, SemanticMetadata
from healthscope.loader import ConfigurationError
from healthscope.routing import RoutingTable, load_routing_table, log_path_for

logger = logging.getLogger(__name__)

EVENT_OPERATION = "Starting operation: {}"
EVENT_CHECK = "Checking: {}"
EVENT_SNAPSHOT = "System state snapshot: {}"
EVENT_COMMAND_SUCCESS = "Command completed: {}"
EVENT_COMMAND_FAILED = "Command failed: {}"


def new_context_id(component: str) -> str:
    """Context id shared by every record of one execution run."""
    return f"{component}-{os.getpid()}-{time.time_ns()}"


class HealthEmitter:
    """Writes health-scored records for one component."""

    def __init__(
        self,
        component: str,
        config: Optional[HealthScopeConfig] = None,
        routing: Optional[RoutingTable] = None,
        log_file: Optional[Path] = None,
        context_id: Optional[str] = None,
    ) -> None:
        """
        Initialize an emitter.

        Args:
            component: Component name, used for file routing
            config: Configuration (defaults to the global config)
            routing: Routing table (defaults to the configured table)
            log_file: Explicit log file, bypassing routing
            context_id: Explicit context id (generated when omitted)
        """
        self.component = component
        self.config = config or get_config()
        if log_file is None:
            log_file = log_path_for(component, self.config, routing or self._routing())
        self.log_file = log_file
        self.context_id = context_id or new_context_id(component)
        self.session_health = 0
        self.total_possible_health = 0
        self.normalized_health = 0

        identity = capture_partial()
        self.user = user_identifier(identity["user"], identity["host"], identity["pid"])

    def _routing(self) -> RoutingTable:
        try:
            return load_routing_table(self.config)
        except ConfigurationError as exc:
            logger.warning("Using built-in routing for %s: %s", self.component, exc)
            return RoutingTable()

    # -- health bookkeeping ----------------------------------------------------

    def declare_health_total(self, total: int) -> None:
        """Set the denominator used to normalize session health."""
        self.total_possible_health = total
        self.normalized_health = normalize_health(self.session_health, total)

    @property
    def health(self) -> int:
        return self.normalized_health

    def _apply(self, impact: int) -> None:
        self.session_health += impact
        self.normalized_health = normalize_health(
            self.session_health, self.total_possible_health
        )

    # -- core write path -------------------------------------------------------

    def _capture(self, level: str) -> Optional[dict[str, Any]]:
        if level not in self.config.full_context_levels:
            return None
        return capture_full(self.config.env_capture_prefix)

    def _emit(
        self,
        level: Level,
        event: str,
        impact: int,
        details: Optional[dict[str, Any]] = None,
        semantic: Optional[SemanticMetadata] = None,
    ) -> None:
        self._apply(impact)
        try:
            record = LogRecord(
                timestamp=datetime.now(),
                level=level.value,
                component=self.component,
                user=self.user,
                context_id=self.context_id,
                event=event,
                raw_health=self.session_health,
                normalized_health=self.normalized_health,
                health_impact=impact,
                details=dict(details or {}),
                context=self._capture(level.value),
                semantic=semantic if semantic is not None and not semantic.is_empty() else None,
            )
            block = format_log_record(record)
        except Exception as exc:
            logger.warning("Dropping %s record for %s: %s", level.value, self.component, exc)
            return
        append_block(
            self.log_file,
            block,
            max_bytes=self.config.rotation_max_bytes,
            keep=self.config.rotation_keep,
        )

    # -- public levels ---------------------------------------------------------

    def operation(self, command: str, impact: int, *args: str) -> None:
        """Log the start of an operation."""
        full_command = " ".join([command, *args]) if args else command
        self._emit(
            Level.OPERATION,
            EVENT_OPERATION.format(command),
            impact,
            {"command": full_command},
        )

    def success(
        self,
        event: str,
        impact: int,
        details: Optional[dict[str, Any]] = None,
        semantic: Optional[SemanticMetadata] = None,
    ) -> None:
        self._emit(Level.SUCCESS, event, impact, details, semantic)

    def failure(
        self,
        event: str,
        reason: str,
        impact: int,
        details: Optional[dict[str, Any]] = None,
        semantic: Optional[SemanticMetadata] = None,
    ) -> None:
        """Log an expected failure; ``reason`` is added to the details."""
        merged = dict(details or {})
        merged["reason"] = reason
        self._emit(Level.FAILURE, event, impact, merged, semantic)

    def error(self, event: str, exc: BaseException, impact: int) -> None:
        """Log an unexpected error with its traceback."""
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        self._emit(
            Level.ERROR,
            event,
            impact,
            {"error": str(exc), "stack_trace": stack.rstrip("\n")},
        )

    def check(
        self,
        what: str,
        result: bool,
        impact: int,
        details: Optional[dict[str, Any]] = None,
        semantic: Optional[SemanticMetadata] = None,
    ) -> None:
        """Log a validation; the event reads ``Checking: <what>``."""
        merged = dict(details or {})
        merged["result"] = result
        self._emit(Level.CHECK, EVENT_CHECK.format(what), impact, merged, semantic)

    def warning(
        self,
        event: str,
        impact: int,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self._emit(Level.WARNING, event, impact, details)

    def snapshot_state(self, label: str, impact: int = 0) -> None:
        """Log a full environment snapshot."""
        self._emit(Level.CONTEXT, EVENT_SNAPSHOT.format(label), impact)

    def debug(
        self,
        event: str,
        impact: int = 0,
        state: Optional[dict[str, Any]] = None,
    ) -> None:
        self._emit(Level.DEBUG, event, impact, state)

    # -- command helper --------------------------------------------------------

    def run_command(self, command: str, *args: str) -> int:
        """Run a subprocess, logging OPERATION then SUCCESS or FAILURE.

        Returns the exit code (127 when the command cannot be started).
        """
        cfg = self.config
        full_command = " ".join([command, *args]) if args else command
        self.operation(command, cfg.command_operation_impact, *args)

        start = time.monotonic()
        try:
            completed = subprocess.run(
                [command, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
            exit_code = completed.returncode
            output = completed.stdout or ""
        except OSError as exc:
            exit_code = 127
            output = str(exc)
        duration_ms = int((time.monotonic() - start) * 1000)

        details: dict[str, Any] = {
            "command": full_command,
            "exit_code": exit_code,
            "duration": f"{duration_ms}ms",
            "output": output,
        }
        if exit_code == 0:
            self.success(EVENT_COMMAND_SUCCESS.format(command), cfg.command_success_impact, details)
        else:
            self.failure(
                EVENT_COMMAND_FAILED.format(command),
                f"exit code: {exit_code}",
                cfg.command_failure_impact,
                details,
            )
        return exit_code
