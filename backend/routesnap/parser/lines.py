"""
RouteSnap Backend — Route-Sheet Line Preprocessing
====================================================

What:  Turns raw OCR / pasted CSV text into cleaned, non-empty logical lines.
Why:   OCR engines emit non-breaking spaces, full-width digits and ligatures
       that break delimiter detection further down the pipeline.
How:   Split on newline, replace U+00A0 with a space, NFKC-normalize, trim,
       then drop blanks and (optionally) comment lines.
Who:   Called by parse_route_sheet() as the first stage.

Trimming:
    Edge whitespace is removed except tabs. A tab is a column delimiter, so
    "\tActive\tnote" keeps its empty first column (and is later dropped for
    having no address) instead of shifting "Active" into the address slot.
"""

import re
import unicodedata
from typing import List

NBSP = "\u00a0"

# Whitespace other than tab at either end of a line
_EDGE_SPACE = re.compile(r"^[^\S\t]+|[^\S\t]+$")

# Lines starting with one of these are annotations, not stops
COMMENT_PREFIXES = ("#", "//")


def clean_line(line: str) -> str:
    """Replace non-breaking spaces, apply NFKC, trim everything but tabs."""
    normalized = unicodedata.normalize("NFKC", line.replace(NBSP, " "))
    return _EDGE_SPACE.sub("", normalized)


def is_comment(line: str) -> bool:
    return line.startswith(COMMENT_PREFIXES)


def preprocess_lines(raw_text: object, skip_comments: bool = True) -> List[str]:
    """
    Split raw text into cleaned logical lines.

    Args:
        raw_text:      Text from the OCR provider or a pasted CSV export.
        skip_comments: Drop lines beginning with '#' or '//'.

    Returns:
        Cleaned lines in input order. An empty list when raw_text is not a
        str (None, bytes, numbers); this never raises.
    """
    if not isinstance(raw_text, str):
        return []

    lines = []
    for raw_line in raw_text.split("\n"):
        line = clean_line(raw_line)
        if not line.strip():
            continue
        if skip_comments and is_comment(line):
            continue
        lines.append(line)
    return lines
