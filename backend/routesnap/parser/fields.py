"""
RouteSnap Backend — Delimiter Detection & Field Splitting
===========================================================

What:  Splits one cleaned route-sheet line into trimmed fields.
Why:   Real OCR output mixes delimiters line to line: a tab-separated row can
       be followed by a comma row and then a column-aligned row with no
       delimiter at all. Detection is therefore per line, never per document.
How:   A ranked list of (predicate, splitter) pairs; the first predicate that
       matches the line picks the splitter.

Dispatch order:
    1. Line contains a tab        → split on tab
    2. Line contains a comma      → CSV quoted-field scanner
    3. Anything else              → runs of 2+ whitespace become column breaks
"""

import re
from typing import Callable, List, Tuple

QUOTE = '"'
BACKSLASH = "\\"
COMMA = ","

# Two or more whitespace characters separate columns in aligned OCR text
_COLUMN_GAP = re.compile(r"\s{2,}")
_COLUMN_MARKER = "|"


def split_csv_line(line: str) -> List[str]:
    """
    Split a comma-delimited line, honoring double-quoted fields.

    Scanner rules:
        - ""  inside the line decodes to a literal quote; quote state unchanged
        - "   toggles the inside-quotes flag, unless preceded by a backslash,
              in which case it is kept as a literal character
        - ,   outside quotes ends the current field; inside quotes it is text

    The final field is always pushed, even when empty. An unterminated quote
    is not an error: the scanner simply ends inside the quoted span and emits
    whatever it accumulated.
    """
    fields: List[str] = []
    current: List[str] = []
    inside_quotes = False

    i = 0
    length = len(line)
    while i < length:
        char = line[i]

        if char == QUOTE and i + 1 < length and line[i + 1] == QUOTE:
            current.append(QUOTE)
            i += 2
            continue

        if char == QUOTE and (i == 0 or line[i - 1] != BACKSLASH):
            inside_quotes = not inside_quotes
            i += 1
            continue

        if char == COMMA and not inside_quotes:
            fields.append("".join(current).strip())
            current = []
            i += 1
            continue

        current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def split_tab_line(line: str) -> List[str]:
    return [part.strip() for part in line.split("\t")]


def split_whitespace_columns(line: str) -> List[str]:
    """Column-aligned text: every gap of 2+ whitespace chars is a delimiter."""
    marked = _COLUMN_GAP.sub(_COLUMN_MARKER, line)
    return [part.strip() for part in marked.split(_COLUMN_MARKER)]


# (name, predicate, splitter), evaluated top to bottom; first match wins
Splitter = Callable[[str], List[str]]
SPLIT_RULES: List[Tuple[str, Callable[[str], bool], Splitter]] = [
    ("tab", lambda line: "\t" in line, split_tab_line),
    ("csv", lambda line: COMMA in line, split_csv_line),
    ("spaces", lambda line: True, split_whitespace_columns),
]


def detect_delimiter(line: str) -> str:
    """Return the name of the rule that would split this line."""
    for name, matches, _ in SPLIT_RULES:
        if matches(line):
            return name
    return SPLIT_RULES[-1][0]


def split_fields(line: str) -> List[str]:
    """Split one cleaned line into trimmed fields using the first matching rule."""
    for _, matches, splitter in SPLIT_RULES:
        if matches(line):
            return splitter(line)
    return [line.strip()]
