"""
RouteSnap Backend — Stop Field Normalization
==============================================

What:  Canonical forms for the three stop fields: address, status, notes.
Why:   Couriers write "Cancelled", "CANC" or "cancel" for the same thing, and
       OCR inserts stray spacing into addresses. Downstream consumers (the
       geocoder, the map pin colors) need one spelling per concept.

Status modes:
    Lenient (default): the raw token lower-cased, nothing else.
    Strict:            folded through STATUS_SYNONYMS onto the canonical set;
                       anything unrecognized becomes UNKNOWN_STATUS.

Extending the vocabulary:
    Add rows to STATUS_SYNONYMS. The parsing algorithm never changes for a
    new spelling.
"""

import re
from typing import Dict, FrozenSet

ACTIVE = "active"
SUSPENDED = "suspended"
CANCELED = "canceled"
UNKNOWN_STATUS = "unknown"

CANONICAL_STATUSES: FrozenSet[str] = frozenset({ACTIVE, SUSPENDED, CANCELED, UNKNOWN_STATUS})

# Lower-cased spelling → canonical status
STATUS_SYNONYMS: Dict[str, str] = {
    "active": ACTIVE,
    "suspended": SUSPENDED,
    "canceled": CANCELED,
    "cancelled": CANCELED,  # UK spelling
    "cancel": CANCELED,
    "canc": CANCELED,
}

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_address(address: str) -> str:
    """Lower-case, collapse internal whitespace to single spaces, trim. Idempotent."""
    return _WHITESPACE_RUN.sub(" ", address.lower()).strip()


def lenient_status(raw_status: str) -> str:
    return (raw_status or "").lower()


def validate_status(raw_status: str) -> str:
    """
    Fold a raw status token onto the canonical set.

    Returns:
        One of active / suspended / canceled, or "unknown" for empty and
        unrecognized tokens.
    """
    if not raw_status:
        return UNKNOWN_STATUS
    return STATUS_SYNONYMS.get(raw_status.strip().lower(), UNKNOWN_STATUS)


def normalize_status(raw_status: str, strict: bool = False) -> str:
    return validate_status(raw_status) if strict else lenient_status(raw_status)


def normalize_notes(raw_notes: str, fold_case: bool = True) -> str:
    notes = (raw_notes or "").strip()
    return notes.lower() if fold_case else notes
