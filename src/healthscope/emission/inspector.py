"""
State inspector: expected-vs-actual snapshots in a parallel ``.debug`` file.

The inspector is disabled by default; every call on a disabled inspector
returns immediately.  Once enabled, a session writes one file::

    <debug_dir>/<component>/<component>-<unix>.debug

starting with a session banner.  Entries carry the same context id as the
component's ``HealthEmitter`` so the analyzer can join the two streams.

The inspector records both sides of a comparison but never decides whether
they match; ``InspectionRecord.matches`` is evaluated by the reader.

Usage::

    emitter = HealthEmitter("validate")
    with StateInspector.for_emitter(emitter) as inspector:
        inspector.expected_state("config-loaded", expected=3, actual=len(keys))
        inspector.counter("files-scanned", count=scanned, expected=12)
"""

from __future__ import annotations

import gc
import logging
import os
import resource
import sys
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from healthscope.config import HealthScopeConfig, get_config
from healthscope.emission.context import capture_full, capture_partial, user_identifier
from healthscope.emission.emitter import new_context_id
from healthscope.emission.wire import (
    append_block,
    format_inspection_record,
    format_session_banner,
)
from healthscope.models import InspectionRecord, InspectionType

if TYPE_CHECKING:
    from healthscope.emission.emitter import HealthEmitter

logger = logging.getLogger(__name__)

DEFAULT_STACK_DEPTH = 10


def _call_site() -> str:
    """``file:line`` of the first frame outside this module."""
    frame = sys._getframe(1)
    while frame is not None and frame.f_code.co_filename == __file__:
        frame = frame.f_back
    if frame is None:
        return "unknown"
    return f"{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}"


class StateInspector:
    """Writes state snapshots for one component."""

    def __init__(
        self,
        component: str,
        context_id: Optional[str] = None,
        config: Optional[HealthScopeConfig] = None,
    ) -> None:
        self.component = component
        self.context_id = context_id or new_context_id(component)
        self.config = config or get_config()
        self.debug_file: Optional[Path] = None
        self._enabled = False

        identity = capture_partial()
        self.user = user_identifier(identity["user"], identity["host"], identity["pid"])

    @classmethod
    def for_emitter(cls, emitter: "HealthEmitter") -> "StateInspector":
        """Inspector sharing the emitter's component, context id and config."""
        return cls(emitter.component, emitter.context_id, emitter.config)

    # -- lifecycle -------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        """Start a session file.  Calling it again keeps the current session."""
        if self._enabled:
            return
        started = datetime.now()
        directory = self.config.get_debug_path(self.component)
        self.debug_file = directory / (
            f"{self.component}-{int(started.timestamp())}"
            f"{self.config.debug_file_extension}"
        )
        banner = format_session_banner(
            self.component, self.context_id, os.getpid(), started
        )
        if not append_block(self.debug_file, banner):
            logger.warning("State inspection disabled for %s", self.component)
            return
        self._enabled = True
        logger.debug("Inspection session started: %s", self.debug_file)

    def disable(self) -> None:
        self._enabled = False

    def close(self) -> None:
        self.disable()

    def __enter__(self) -> "StateInspector":
        self.enable()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- core write path -------------------------------------------------------

    def _write(
        self,
        entry_type: InspectionType,
        label: str,
        details: Optional[dict[str, Any]] = None,
        **comparison: Any,
    ) -> None:
        if not self._enabled or self.debug_file is None:
            return
        try:
            record = InspectionRecord(
                timestamp=datetime.now(),
                entry_type=entry_type.value,
                component=self.component,
                user=self.user,
                context_id=self.context_id,
                label=label,
                call_site=_call_site(),
                details=dict(details or {}),
                **comparison,
            )
            block = format_inspection_record(record)
        except Exception as exc:
            logger.warning("Dropping %s inspection for %s: %s", entry_type.value, self.component, exc)
            return
        append_block(self.debug_file, block)

    # -- state -----------------------------------------------------------------

    def snapshot(self, label: str, details: Optional[dict[str, Any]] = None) -> None:
        """Capture variable state at this point."""
        self._write(InspectionType.SNAPSHOT, label, details)

    def expected_state(
        self,
        label: str,
        expected: Any,
        actual: Any,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record what was expected next to what was observed."""
        self._write(
            InspectionType.EXPECTED_STATE,
            label,
            details,
            expected=expected,
            actual=actual,
        )

    def conditional_snapshot(
        self,
        label: str,
        condition: bool,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Capture state only when ``condition`` holds."""
        if not condition:
            return
        merged = dict(details or {})
        merged["condition_met"] = True
        self._write(InspectionType.CONDITIONAL, label, merged)

    def checkpoint(self, label: str, details: Optional[dict[str, Any]] = None) -> None:
        self._write(InspectionType.CHECKPOINT, label, details)

    # -- execution -------------------------------------------------------------

    def timing(self, label: str, duration: float, expected: float) -> None:
        """Record a duration against its budget, both in seconds."""
        duration_ms = int(duration * 1000)
        expected_ms = int(expected * 1000)
        self._write(
            InspectionType.TIMING,
            label,
            {"variance_ms": duration_ms - expected_ms},
            expected=expected_ms,
            actual=duration_ms,
        )

    def counter(self, label: str, count: int, expected: int) -> None:
        self._write(
            InspectionType.COUNTER,
            label,
            {"variance": count - expected},
            expected=expected,
            actual=count,
        )

    def flow(self, label: str, branch: str, expected: Optional[str] = None) -> None:
        """Record which branch ran, and optionally which one was expected."""
        if expected:
            self._write(InspectionType.FLOW, label, expected=expected, actual=branch)
        else:
            self._write(InspectionType.FLOW, label, {"branch_taken": branch})

    def call_stack(self, label: str, depth: int = DEFAULT_STACK_DEPTH) -> None:
        if not self._enabled:
            return
        if depth <= 0:
            depth = DEFAULT_STACK_DEPTH
        frames = traceback.extract_stack(sys._getframe(1), limit=depth)
        stack = [
            f"{frame.name} ({os.path.basename(frame.filename)}:{frame.lineno})"
            for frame in reversed(frames)
        ]
        self._write(
            InspectionType.CALLSTACK,
            label,
            {"depth": len(stack), "stack": " <- ".join(stack)},
        )

    # -- system ----------------------------------------------------------------

    def memory(self, label: str, details: Optional[dict[str, Any]] = None) -> None:
        """Capture interpreter memory and object statistics."""
        if not self._enabled:
            return
        data: dict[str, Any] = {
            "gc_counts": list(gc.get_count()),
            "gc_objects": len(gc.get_objects()),
            "threads": threading.active_count(),
        }
        data["max_rss_kb"] = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        data.update(details or {})
        self._write(InspectionType.MEMORY, label, data)

    def system_context(self, label: str) -> None:
        """Capture the same environment snapshot the emitter records."""
        if not self._enabled:
            return
        context = capture_full(self.config.env_capture_prefix)
        self._write(InspectionType.SYSTEM_CONTEXT, label, context)
