"""
Read log and debug files back into records.

Parsing is line-oriented and forgiving: one malformed record never hides the
records around it.  The rules:

- a header line (starting with ``[``) that parses opens a record; one that
  does not is counted once and everything up to the next separator or header
  is discarded with it;
- an unindented, non-blank line that is neither a header nor a separator is
  counted and skipped;
- unrecognised indented lines are skipped silently;
- a trailing record without a ``---`` separator is kept, since the writer may
  still be appending to the file;
- a missing or unreadable file yields no records and one error.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from pydantic import ValidationError

from healthscope.emission.wire import (
    BLOCK_MARKER,
    CALL_SITE_PREFIX,
    CONTEXT_HEADER,
    DETAILS_HEADER,
    EVENT_PREFIX,
    FIELD_INDENT,
    INDICATOR_PREFIX,
    NESTED_INDENT,
    SECTION_INDENT,
    SEMANTIC_HEADER,
    SEMANTIC_MAPPING_FIELDS,
    SEPARATOR,
    STATE_HEADER,
    decode_text,
    decode_value,
    parse_timestamp,
)
from healthscope.models import InspectionRecord, LogRecord, SemanticMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOG_HEADER_RE = re.compile(
    r"^\[(?P<timestamp>[^\]]+)\] (?P<level>[A-Z_]+) \| "
    r"(?P<component>[^|]+?) \| (?P<user>[^|]*?) \| (?P<context_id>[^|]+?) \| "
    r"HEALTH: (?P<normalized>-?\d+)% "
    r"\(raw: (?P<raw>-?\d+), Δ(?P<impact>[+-]?\d+)\)\s*$"
)

INSPECTION_HEADER_RE = re.compile(
    r"^\[(?P<timestamp>[^\]]+)\] (?P<entry_type>[A-Z_]+) \| "
    r"(?P<component>[^|]+?) \| (?P<user>[^|]*?) \| (?P<context_id>[^|]+?)\s*$"
)

# Session banner lines written at the top of each debug file
BANNER_CHARS = ("╔", "║", "╚")

PathLike = Union[str, Path]


@dataclass
class ParseResult(Generic[T]):
    """Records recovered from one stream plus the number of malformed lines."""

    records: list[T] = field(default_factory=list)
    error_count: int = 0

    def extend(self, other: "ParseResult[T]") -> None:
        self.records.extend(other.records)
        self.error_count += other.error_count


# ---------------------------------------------------------------------------
# Record body accumulation
# ---------------------------------------------------------------------------


class _Body:
    """Sections collected between a header and its separator."""

    def __init__(self, header: dict[str, str]) -> None:
        self.header = header
        self.event = ""
        self.call_site = ""
        self.context: dict[str, Any] = {}
        self.details: dict[str, Any] = {}
        self.semantic: dict[str, Any] = {}
        self.state: dict[str, Any] = {}
        self.section: Optional[str] = None
        self._nested_key: Optional[str] = None
        self._block_key: Optional[str] = None
        self._block_lines: list[str] = []

    @property
    def in_block(self) -> bool:
        return self._block_key is not None

    def _target(self) -> Optional[dict[str, Any]]:
        return {
            CONTEXT_HEADER: self.context,
            DETAILS_HEADER: self.details,
            SEMANTIC_HEADER: self.semantic,
            STATE_HEADER: self.state,
        }.get(self.section or "")

    def _close_block(self) -> None:
        if self._block_key is None:
            return
        target = self._target()
        if target is not None:
            target[self._block_key] = "\n".join(self._block_lines)
        self._block_key = None
        self._block_lines = []

    def feed(self, line: str) -> None:
        """Consume one indented (or blank) line of the body."""
        if self._block_key is not None:
            if line.startswith(NESTED_INDENT) or line == "":
                self._block_lines.append(line[len(NESTED_INDENT):])
                return
            self._close_block()

        if not line.strip():
            return

        if line.startswith(FIELD_INDENT):
            self._feed_field(line)
            return

        text = line[len(SECTION_INDENT):]
        self._nested_key = None
        if text.startswith(EVENT_PREFIX):
            self.event = decode_text(text[len(EVENT_PREFIX):].strip())
            self.section = None
        elif text.startswith(CALL_SITE_PREFIX):
            self.call_site = decode_text(text[len(CALL_SITE_PREFIX):].strip())
            self.section = None
        elif text.startswith(INDICATOR_PREFIX):
            self.section = None
        elif text in (CONTEXT_HEADER, DETAILS_HEADER, SEMANTIC_HEADER, STATE_HEADER):
            self.section = text
        else:
            self.section = None

    def _feed_field(self, line: str) -> None:
        target = self._target()
        if target is None:
            return

        if line.startswith(NESTED_INDENT) and self._nested_key is not None:
            key, sep, value = line[len(NESTED_INDENT):].partition(": ")
            if sep:
                target[self._nested_key][key] = decode_value(value)
            return

        text = line[len(FIELD_INDENT):]
        key, sep, value = text.partition(": ")
        if not sep:
            if text.endswith(":") and self.section == CONTEXT_HEADER:
                self._nested_key = text[:-1]
                target[self._nested_key] = {}
            return
        self._nested_key = None
        if value == BLOCK_MARKER:
            self._block_key = key
            self._block_lines = []
        else:
            target[key] = decode_value(value)

    def finish(self) -> None:
        self._close_block()


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def _semantic_from(fields: dict[str, Any]) -> Optional[SemanticMetadata]:
    if not fields:
        return None
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if key in SEMANTIC_MAPPING_FIELDS:
            cleaned[key] = value if isinstance(value, dict) else {}
        else:
            cleaned[key] = str(value)
    return SemanticMetadata.model_validate(cleaned)


def _build_log_record(body: _Body) -> LogRecord:
    header = body.header
    return LogRecord(
        timestamp=parse_timestamp(header["timestamp"]),
        level=header["level"],
        component=header["component"],
        user=header["user"],
        context_id=header["context_id"],
        event=body.event,
        raw_health=int(header["raw"]),
        normalized_health=int(header["normalized"]),
        health_impact=int(header["impact"]),
        details=body.details,
        context=body.context or None,
        semantic=_semantic_from(body.semantic),
    )


def _build_inspection_record(body: _Body) -> InspectionRecord:
    header = body.header
    state = dict(body.state)
    comparison = {key: state.pop(key) for key in ("expected", "actual") if key in state}
    return InspectionRecord(
        timestamp=parse_timestamp(header["timestamp"]),
        entry_type=header["entry_type"],
        component=header["component"],
        user=header["user"],
        context_id=header["context_id"],
        label=body.event,
        call_site=body.call_site,
        details=state,
        **comparison,
    )


# ---------------------------------------------------------------------------
# Stream parsing
# ---------------------------------------------------------------------------


def _lines(text: str) -> list[str]:
    """Split on line feeds only, dropping a CR left by CRLF endings."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _parse_text(
    text: str,
    header_re: re.Pattern[str],
    build: Callable[[_Body], T],
) -> ParseResult[T]:
    result: ParseResult[T] = ParseResult()
    body: Optional[_Body] = None
    discarding = False

    def close() -> None:
        nonlocal body
        if body is None:
            return
        body.finish()
        try:
            result.records.append(build(body))
        except (ValidationError, ValueError) as exc:
            logger.debug("Dropping record: %s", exc)
            result.error_count += 1
        body = None

    for line in _lines(text):
        if body is not None and body.in_block and (line.startswith(NESTED_INDENT) or line == ""):
            body.feed(line)
            continue

        if line.startswith("["):
            close()
            match = header_re.match(line)
            if match is None:
                result.error_count += 1
                discarding = True
            else:
                discarding = False
                body = _Body(match.groupdict())
            continue

        if line.rstrip() == SEPARATOR:
            close()
            discarding = False
            continue

        if discarding:
            continue

        if not line.strip() or line.startswith(BANNER_CHARS):
            continue

        if line.startswith(" "):
            if body is not None:
                body.feed(line)
            continue

        # Unindented line outside the known structure
        result.error_count += 1

    close()
    return result


def parse_log_text(text: str) -> ParseResult[LogRecord]:
    return _parse_text(text, LOG_HEADER_RE, _build_log_record)


def parse_debug_text(text: str) -> ParseResult[InspectionRecord]:
    return _parse_text(text, INSPECTION_HEADER_RE, _build_inspection_record)


def _read(path: PathLike) -> Optional[str]:
    try:
        with open(path, encoding="utf-8", errors="replace", newline="") as fh:
            return fh.read()
    except OSError as exc:
        logger.warning("Cannot read %s: %s", path, exc)
        return None


def parse_log_file(path: PathLike) -> ParseResult[LogRecord]:
    """Parse a component log file read once to its current end."""
    text = _read(path)
    if text is None:
        return ParseResult(error_count=1)
    result = parse_log_text(text)
    logger.debug(
        "Parsed %s: %d records, %d errors", path, len(result.records), result.error_count
    )
    return result


def parse_debug_file(path: PathLike) -> ParseResult[InspectionRecord]:
    """Parse a state inspector session file."""
    text = _read(path)
    if text is None:
        return ParseResult(error_count=1)
    return parse_debug_text(text)
