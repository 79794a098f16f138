# Parser package init
"""
RouteSnap Backend — Route-Sheet Parser Package
================================================

What:  Pure, synchronous text → stop-record transformation.
Why:   Kept free of I/O so it can be called from the HTTP layer, the CLI and
       tests alike, and concurrently without any coordination.

Module Inventory:
    - lines.py:       newline split, NBSP/NFKC cleanup, comment skipping
    - fields.py:      per-line delimiter detection and CSV quoted-field scanner
    - columns.py:     header-driven column mapping
    - normalize.py:   address / status / notes canonical forms
    - route_sheet.py: parse_route_sheet(), ParseOptions, StopRecord, tracing
"""

from routesnap.parser.normalize import (
    CANONICAL_STATUSES,
    STATUS_SYNONYMS,
    UNKNOWN_STATUS,
    normalize_address,
    validate_status,
)
from routesnap.parser.route_sheet import (
    ParseOptions,
    StopRecord,
    TraceEvent,
    TraceSink,
    logging_sink,
    parse_route_sheet,
)

__all__ = [
    "CANONICAL_STATUSES",
    "STATUS_SYNONYMS",
    "UNKNOWN_STATUS",
    "ParseOptions",
    "StopRecord",
    "TraceEvent",
    "TraceSink",
    "logging_sink",
    "normalize_address",
    "parse_route_sheet",
    "validate_status",
]
