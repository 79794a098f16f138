"""
RouteSnap Backend — Header-Driven Column Mapping
==================================================

What:  Maps the semantic stop fields (address, status, notes) to column
       positions, either from a header row or from the fixed default order.
Why:   Dispatch offices print route sheets with columns in whatever order
       their export tool chose ("Status, Address, Notes" is common).
How:   The header line is split on tab, comma or pipe; each token is
       lower-cased; a field maps to the first token that contains its name.

Fallback:
    If no field name appears anywhere in the header, the "header" was really
    a data row: the caller keeps it and uses DEFAULT_COLUMNS.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

FIELD_NAMES = ("address", "status", "notes")

_HEADER_DELIMITERS = re.compile(r"[\t,|]")


@dataclass(frozen=True)
class ColumnMap:
    """Zero-based column position per field; None means the header lacks it."""

    address: Optional[int] = 0
    status: Optional[int] = 1
    notes: Optional[int] = 2

    @property
    def found_any(self) -> bool:
        return any(pos is not None for pos in (self.address, self.status, self.notes))


DEFAULT_COLUMNS = ColumnMap()


def split_header(line: str) -> List[str]:
    return [token.strip().lower() for token in _HEADER_DELIMITERS.split(line)]


def _find_position(tokens: Sequence[str], field_name: str) -> Optional[int]:
    for position, token in enumerate(tokens):
        if field_name in token:
            return position
    return None


def detect_columns(header_line: str) -> ColumnMap:
    """
    Build a ColumnMap from a header row.

    Substring matching lets "Delivery Address" or "status (code)" match.
    Fields with no matching token come back as None; check found_any to
    decide whether the line was a header at all.
    """
    tokens = split_header(header_line)
    return ColumnMap(
        **{name: _find_position(tokens, name) for name in FIELD_NAMES}
    )


def pick(fields: Sequence[str], position: Optional[int]) -> str:
    """Field at position, or "" when the position is unknown or out of range."""
    if position is None or position >= len(fields):
        return ""
    return fields[position]
