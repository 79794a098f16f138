"""
RouteSnap Backend — Route-Sheet Parser
========================================

What:  Converts raw route-sheet text into an ordered list of StopRecord.
Why:   This is the one piece of the scan pipeline with real decisions in it:
       delimiter detection, quoting, header mapping, status folding and
       tolerance of half-broken OCR lines.
How:   preprocess_lines → split_fields per line → (optional) header column
       map → normalize address / status / notes → StopRecord.
Who:   RouteService (HTTP endpoints), the CLI, and anything else holding text.
When:  After OCR, before geocoding.

Failure Semantics:
    parse_route_sheet() never raises for bad input. Non-text input returns
    an empty list, address-less lines are dropped, unrecognized statuses in
    strict mode become "unknown", unterminated quotes are read best-effort.

Debug Channel:
    With ParseOptions(debug=True) the parser emits TraceEvent objects to a
    sink callable. The default sink writes them to the "routesnap.parser"
    logger. Tracing is a side channel only; results are identical with
    debug on or off.

Example:
    >>> parse_route_sheet("123 Main St\\tActive\\tLeave at door")
    [StopRecord(address='123 main st', status='active', notes='leave at door')]
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from routesnap.parser.columns import DEFAULT_COLUMNS, ColumnMap, detect_columns, pick
from routesnap.parser.fields import detect_delimiter, split_fields
from routesnap.parser.lines import preprocess_lines
from routesnap.parser.normalize import (
    UNKNOWN_STATUS,
    normalize_address,
    normalize_notes,
    normalize_status,
)

logger = logging.getLogger("routesnap.parser")

# ── Trace event kinds ─────────────────────────────────────────────────────
TRACE_INVALID_INPUT = "invalid_input"
TRACE_SKIPPED_LINE = "skipped_line"
TRACE_UNKNOWN_STATUS = "unknown_status"
TRACE_SUMMARY = "summary"


@dataclass(frozen=True)
class StopRecord:
    """One delivery stop read from a route sheet."""

    address: str
    status: str
    notes: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"address": self.address, "status": self.status, "notes": self.notes}


@dataclass(frozen=True)
class ParseOptions:
    """
    Named switches for parse_route_sheet().

    Attributes:
        strict_status:   Fold statuses onto active/suspended/canceled/unknown.
        has_header:      Treat the first line as a header and map columns by name.
        debug:           Emit TraceEvent diagnostics to the sink.
        skip_comments:   Drop lines starting with '#' or '//'.
        fold_notes_case: Lower-case the notes field.
    """

    strict_status: bool = False
    has_header: bool = False
    debug: bool = False
    skip_comments: bool = True
    fold_notes_case: bool = True


@dataclass(frozen=True)
class TraceEvent:
    """A non-fatal diagnostic emitted while parsing with debug enabled."""

    kind: str
    message: str
    line_number: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


TraceSink = Callable[[TraceEvent], None]

_TRACE_LEVELS = {
    TRACE_INVALID_INPUT: logging.WARNING,
    TRACE_SKIPPED_LINE: logging.WARNING,
    TRACE_UNKNOWN_STATUS: logging.WARNING,
    TRACE_SUMMARY: logging.INFO,
}


def logging_sink(event: TraceEvent) -> None:
    """Default sink: forward the event to the routesnap.parser logger."""
    logger.log(
        _TRACE_LEVELS.get(event.kind, logging.DEBUG),
        "%s",
        event.message,
        extra={"trace_kind": event.kind, "line_number": event.line_number},
    )


class _Tracer:
    """Calls the sink only when debug is on; a failing sink never breaks parsing."""

    def __init__(self, enabled: bool, sink: Optional[TraceSink]):
        self.enabled = enabled
        self.sink = sink or logging_sink

    def emit(self, kind: str, message: str, line_number: Optional[int] = None, **details: Any) -> None:
        if not self.enabled:
            return
        try:
            self.sink(TraceEvent(kind=kind, message=message, line_number=line_number, details=details))
        except Exception:
            logger.warning("Trace sink failed on %s event", kind, exc_info=True)


def parse_route_sheet(
    raw_text: object,
    options: Optional[ParseOptions] = None,
    *,
    sink: Optional[TraceSink] = None,
) -> List[StopRecord]:
    """
    Parse route-sheet text into stop records.

    Args:
        raw_text: OCR output or pasted CSV. Anything other than a str yields [].
        options:  ParseOptions; defaults to lenient, headerless, no debug.
        sink:     Receives TraceEvent objects when options.debug is set.
                  Defaults to logging_sink.

    Returns:
        StopRecords in input line order. Lines with no address are dropped.
    """
    options = options or ParseOptions()
    tracer = _Tracer(options.debug, sink)

    if not isinstance(raw_text, str):
        tracer.emit(
            TRACE_INVALID_INPUT,
            f"Invalid route sheet input: {type(raw_text).__name__}",
            input_type=type(raw_text).__name__,
        )
        return []

    lines = preprocess_lines(raw_text, skip_comments=options.skip_comments)

    columns: ColumnMap = DEFAULT_COLUMNS
    first_data_line = 0
    if options.has_header and lines:
        detected = detect_columns(lines[0])
        if detected.found_any:
            columns = detected
            first_data_line = 1

    stops: List[StopRecord] = []
    for index in range(first_data_line, len(lines)):
        line = lines[index]
        line_number = index + 1
        fields = split_fields(line)

        address = normalize_address(pick(fields, columns.address))
        if not address:
            tracer.emit(
                TRACE_SKIPPED_LINE,
                f"Line {line_number} skipped: missing address",
                line_number=line_number,
                delimiter=detect_delimiter(line),
                fields=fields,
            )
            continue

        raw_status = pick(fields, columns.status)
        status = normalize_status(raw_status, strict=options.strict_status)
        if options.strict_status and status == UNKNOWN_STATUS:
            tracer.emit(
                TRACE_UNKNOWN_STATUS,
                f"Line {line_number} has invalid status '{raw_status}', marked as unknown",
                line_number=line_number,
                raw_status=raw_status,
            )

        notes = normalize_notes(pick(fields, columns.notes), fold_case=options.fold_notes_case)
        stops.append(StopRecord(address=address, status=status, notes=notes))

    tracer.emit(
        TRACE_SUMMARY,
        f"Parsed {len(stops)} stops",
        count=len(stops),
        lines=len(lines),
    )
    return stops
