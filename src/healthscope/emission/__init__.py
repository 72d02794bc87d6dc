"""
Detection side: writing health-scored records while components run.

Public API::

    from healthscope.emission import (
        # Health-scored log records
        HealthEmitter,
        # Expected-vs-actual state snapshots
        StateInspector,
        # Wire helpers
        append_block,
        format_log_record,
        format_inspection_record,
    )
"""

from healthscope.emission.emitter import HealthEmitter, new_context_id
from healthscope.emission.inspector import StateInspector
from healthscope.emission.wire import (
    append_block,
    format_inspection_record,
    format_log_record,
)

__all__ = [
    # Emitter
    "HealthEmitter",
    "new_context_id",
    # Inspector
    "StateInspector",
    # Wire
    "append_block",
    "format_log_record",
    "format_inspection_record",
]
