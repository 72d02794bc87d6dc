"""Join log and inspection records that share an execution context id."""

from __future__ import annotations

from collections.abc import Iterable

from healthscope.models import CorrelatedContext, InspectionRecord, LogRecord


def correlate(
    logs: Iterable[LogRecord],
    inspections: Iterable[InspectionRecord],
) -> dict[str, CorrelatedContext]:
    """Group both streams by context id.

    Contexts seen only in the inspection stream are kept, with the component
    taken from the inspection record.
    """
    contexts: dict[str, CorrelatedContext] = {}

    for record in logs:
        ctx = contexts.get(record.context_id)
        if ctx is None:
            ctx = CorrelatedContext(context_id=record.context_id, component=record.component)
            contexts[record.context_id] = ctx
        ctx.records.append(record)

    for inspection in inspections:
        ctx = contexts.get(inspection.context_id)
        if ctx is None:
            ctx = CorrelatedContext(
                context_id=inspection.context_id, component=inspection.component
            )
            contexts[inspection.context_id] = ctx
        ctx.inspections.append(inspection)

    return contexts
