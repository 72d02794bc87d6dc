"""
Fold one component's records into a ``ComponentHealth``.

Self-analysis: when the analyzer assesses its own component, the log holds
the run in progress next to earlier runs.  ``select_completed_run`` picks a
single finished run so the analyzer never grades itself mid-flight.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional

from healthscope.models import ComponentHealth, Level, LogRecord, TERMINAL_LEVELS

logger = logging.getLogger(__name__)


def _runs_in_order(records: Sequence[LogRecord]) -> dict[str, list[LogRecord]]:
    """Records grouped by context id, ordered by each run's last timestamp."""
    runs: dict[str, list[LogRecord]] = {}
    for record in records:
        runs.setdefault(record.context_id, []).append(record)
    return dict(sorted(runs.items(), key=lambda item: item[1][-1].timestamp))


def _is_complete(last: LogRecord, completion_event: Optional[str]) -> bool:
    if last.level not in TERMINAL_LEVELS:
        return False
    return completion_event is None or last.event == completion_event


def select_completed_run(
    records: Sequence[LogRecord],
    current_context_id: Optional[str] = None,
    completion_event: Optional[str] = None,
) -> Optional[str]:
    """Pick the context id of the most recent finished run.

    1. The run identified by ``current_context_id`` is never chosen.
    2. The most recent run whose last record is SUCCESS or FAILURE wins.
       With ``completion_event`` set, that record must also carry this event,
       so an intermediate SUCCESS does not mark a run finished.
    3. Otherwise fall back to recency: with several runs skip the newest
       (it may still be writing) and take the one before; with a single run
       take it.
    """
    runs = _runs_in_order(records)
    if current_context_id is not None:
        runs.pop(current_context_id, None)
    if not runs:
        return None

    ordered = list(runs)
    for context_id in reversed(ordered):
        if _is_complete(runs[context_id][-1], completion_event):
            return context_id

    if len(ordered) > 1:
        return ordered[-2]
    return ordered[0]


def aggregate(
    component: str,
    records: Sequence[LogRecord],
    self_component: Optional[str] = None,
    current_context_id: Optional[str] = None,
    completion_event: Optional[str] = None,
) -> ComponentHealth:
    """Count record kinds and track the health trajectory of ``component``."""
    health = ComponentHealth(name=component)

    if self_component is not None and component == self_component:
        selected = select_completed_run(records, current_context_id, completion_event)
        health.selected_context_id = selected
        records = [r for r in records if r.context_id == selected]
        logger.debug("Self-analysis of %s uses run %s", component, selected)

    for record in records:
        level = record.level
        if level == Level.CHECK.value:
            health.check_count += 1
            if record.health_impact > 0:
                health.success_count += 1
            elif record.health_impact < 0:
                health.failure_count += 1
        elif level == Level.SUCCESS.value:
            health.check_count += 1
            health.success_count += 1
        elif level == Level.FAILURE.value:
            health.check_count += 1
            health.failure_count += 1
        elif level == Level.ERROR.value:
            health.error_count += 1
            health.failure_count += 1
        elif level == Level.WARNING.value:
            health.warning_count += 1
        elif level == Level.OPERATION.value:
            health.operation_count += 1

        health.history.append(record.normalized_health)
        health.final_health = record.normalized_health

    health.records = list(records)
    return health
