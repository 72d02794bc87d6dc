"""
Text wire format for log and inspection records.

A log record is one block::

    [2026-01-02 15:04:05.000] CHECK | validate | ada@host:42 | validate-42-17 | HEALTH: 21% (raw: 10, Δ+10)
      EVENT: Checking: file-exists
      DETAILS:
        result: true
      INDICATOR: 💙 [████████████████████████░░░░░░░░░░░░░░░░] (60/100)
    ---

Optional ``CONTEXT:`` (full-context levels) precedes ``EVENT:`` and an
optional ``SEMANTIC:`` block follows ``DETAILS:``.  Inspection records use
the same header without the HEALTH segment and carry ``CALL SITE:`` and
``STATE:`` sections instead.

Scalar detail values are written verbatim when they read back as the same
string, otherwise as JSON.  Strings split only by line feeds use a ``|``
block; any other line break forces JSON.  Event, label and call-site text is
JSON-quoted when it would not survive one line.

Each block is appended with a single ``os.write`` on an ``O_APPEND``
descriptor so concurrent runs of one component never interleave records.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from healthscope.health import health_bar, health_indicator
from healthscope.models import InspectionRecord, LogRecord, SemanticMetadata

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
SEPARATOR = "---"

CONTEXT_HEADER = "CONTEXT:"
EVENT_PREFIX = "EVENT:"
DETAILS_HEADER = "DETAILS:"
SEMANTIC_HEADER = "SEMANTIC:"
INDICATOR_PREFIX = "INDICATOR:"
CALL_SITE_PREFIX = "CALL SITE:"
STATE_HEADER = "STATE:"
BLOCK_MARKER = "|"

SECTION_INDENT = "  "
FIELD_INDENT = "    "
NESTED_INDENT = "      "

SEMANTIC_MAPPING_FIELDS = ("error_details", "recovery_params")

# Everything str.splitlines() treats as a line boundary, except "\n"
LINE_BREAKS = frozenset("\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029")

FILE_PERMISSIONS = 0o644
DIR_PERMISSIONS = 0o755


# ---------------------------------------------------------------------------
# Value encoding
# ---------------------------------------------------------------------------


def format_timestamp(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S.") + f"{ts.microsecond // 1000:03d}"


def parse_timestamp(text: str) -> datetime:
    return datetime.strptime(text.strip(), TIMESTAMP_FORMAT)


def format_delta(delta: int) -> str:
    if delta > 0:
        return f"+{delta}"
    return str(delta)


def _has_break(text: str, include_newline: bool = True) -> bool:
    if include_newline and "\n" in text:
        return True
    return any(ch in LINE_BREAKS for ch in text)


def dump_json(value: Any) -> str:
    """One-line JSON; mappings are key-sorted when their keys compare."""
    try:
        return json.dumps(value, default=str, sort_keys=True)
    except TypeError:
        return json.dumps(value, default=str)


def encode_value(value: Any) -> str:
    """Encode a single-line value so ``decode_value`` restores it."""
    if isinstance(value, str):
        if not value or value == BLOCK_MARKER or value != value.strip() or _has_break(value):
            return json.dumps(value)
        try:
            json.loads(value)
        except ValueError:
            return value
        return json.dumps(value)
    return dump_json(value)


def encode_text(value: str) -> str:
    """Encode an EVENT, CALL SITE or similar free-text line."""
    if value.startswith('"') or value != value.strip() or _has_break(value):
        return json.dumps(value)
    return value


def decode_text(text: str) -> str:
    if text.startswith('"'):
        try:
            value = json.loads(text)
        except ValueError:
            return text
        if isinstance(value, str):
            return value
    return text


def decode_value(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def _write_value(lines: list[str], indent: str, key: str, value: Any) -> None:
    if isinstance(value, str) and "\n" in value and not _has_break(value, include_newline=False):
        lines.append(f"{indent}{key}: {BLOCK_MARKER}")
        for line in value.split("\n"):
            lines.append(f"{indent}  {line}")
    else:
        lines.append(f"{indent}{key}: {encode_value(value)}")


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_log_header(record: LogRecord) -> str:
    return (
        f"[{format_timestamp(record.timestamp)}] {record.level} | "
        f"{record.component} | {record.user} | {record.context_id} | "
        f"HEALTH: {record.normalized_health}% "
        f"(raw: {record.raw_health}, Δ{format_delta(record.health_impact)})"
    )


def _format_context(lines: list[str], context: dict[str, Any]) -> None:
    lines.append(SECTION_INDENT + CONTEXT_HEADER)
    for key, value in context.items():
        if isinstance(value, dict):
            lines.append(f"{FIELD_INDENT}{key}:")
            for sub_key, sub_value in value.items():
                lines.append(f"{NESTED_INDENT}{sub_key}: {encode_value(sub_value)}")
        else:
            lines.append(f"{FIELD_INDENT}{key}: {encode_value(value)}")


def _format_semantic(lines: list[str], semantic: SemanticMetadata) -> None:
    fields = {k: v for k, v in semantic.model_dump().items() if v}
    if not fields:
        return
    lines.append(SECTION_INDENT + SEMANTIC_HEADER)
    for key, value in fields.items():
        if key in SEMANTIC_MAPPING_FIELDS:
            lines.append(f"{FIELD_INDENT}{key}: {dump_json(value)}")
        else:
            lines.append(f"{FIELD_INDENT}{key}: {encode_value(value)}")


def format_log_record(record: LogRecord) -> str:
    """Render a record as one newline-terminated text block."""
    lines = [format_log_header(record)]
    if record.context:
        _format_context(lines, record.context)
    lines.append(f"{SECTION_INDENT}{EVENT_PREFIX} {encode_text(record.event)}")
    if record.details:
        lines.append(SECTION_INDENT + DETAILS_HEADER)
        for key, value in record.details.items():
            _write_value(lines, FIELD_INDENT, key, value)
    if record.semantic is not None:
        _format_semantic(lines, record.semantic)
    lines.append(
        f"{SECTION_INDENT}{INDICATOR_PREFIX} "
        f"{health_indicator(record.normalized_health)} "
        f"{health_bar(record.normalized_health)}"
    )
    lines.append(SEPARATOR)
    return "\n".join(lines) + "\n"


def format_inspection_header(record: InspectionRecord) -> str:
    return (
        f"[{format_timestamp(record.timestamp)}] {record.entry_type} | "
        f"{record.component} | {record.user} | {record.context_id}"
    )


def format_inspection_record(record: InspectionRecord) -> str:
    lines = [format_inspection_header(record)]
    lines.append(f"{SECTION_INDENT}{EVENT_PREFIX} {encode_text(record.label)}")
    lines.append(f"{SECTION_INDENT}{CALL_SITE_PREFIX} {encode_text(record.call_site)}")
    state: dict[str, Any] = {}
    if "expected" in record.model_fields_set:
        state["expected"] = record.expected
    if "actual" in record.model_fields_set:
        state["actual"] = record.actual
    state.update(record.details)
    if state:
        lines.append(SECTION_INDENT + STATE_HEADER)
        for key, value in state.items():
            _write_value(lines, FIELD_INDENT, key, value)
    lines.append(SEPARATOR)
    return "\n".join(lines) + "\n"


def format_session_banner(component: str, context_id: str, pid: int, started: datetime) -> str:
    rule = "═" * 64
    return (
        f"╔{rule}╗\n"
        f"║ healthscope inspection session - {component}\n"
        f"║ Context ID: {context_id}\n"
        f"║ PID: {pid}\n"
        f"║ Started: {started.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"╚{rule}╝\n"
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def rotated_path(path: Path, index: int) -> Path:
    return path.with_name(f"{path.name}.{index}")


def rotate_if_needed(path: Path, max_bytes: int, keep: int) -> bool:
    """Shift ``path`` to ``path.1`` (and older ones up) once it is too big.

    Returns whether a rotation happened.  Failures are logged, never raised.
    """
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Failed to stat log file %s: %s", path, exc)
        return False

    if size < max_bytes:
        return False

    oldest = rotated_path(path, keep)
    try:
        oldest.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to remove oldest rotation %s: %s", oldest, exc)

    for index in range(keep - 1, 0, -1):
        current = rotated_path(path, index)
        if current.exists():
            try:
                current.rename(rotated_path(path, index + 1))
            except OSError as exc:
                logger.warning("Failed to rotate %s: %s", current, exc)

    try:
        path.rename(rotated_path(path, 1))
    except OSError as exc:
        logger.warning("Failed to rotate current log %s: %s", path, exc)
        return False
    logger.debug("Rotated %s (%d bytes)", path, size)
    return True


def append_block(
    path: Path,
    block: str,
    max_bytes: Optional[int] = None,
    keep: int = 5,
) -> bool:
    """Append one record block with a single write call.

    Returns ``True`` on success.  Never raises: an unwritable target is
    logged and reported as ``False`` so emission cannot break the caller.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=DIR_PERMISSIONS)
    except OSError as exc:
        logger.warning("Failed to create log directory %s: %s", path.parent, exc)
        return False

    if max_bytes is not None:
        rotate_if_needed(path, max_bytes, keep)

    data = block.encode("utf-8")
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, FILE_PERMISSIONS)
    except OSError as exc:
        logger.warning("Failed to open log file %s: %s", path, exc)
        return False
    try:
        os.write(fd, data)
    except OSError as exc:
        logger.warning("Failed to write to log file %s: %s", path, exc)
        return False
    finally:
        os.close(fd)
    return True
