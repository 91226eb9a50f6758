"""Per-unit identifier generation and validation.

Generated identifiers look like ``NEW-TABTB-0001``:

* a short code for the order type (``NEW``, ``REF``, ``RPL``, ``OUT`` or the
  ``ORD`` fallback),
* the first three letters of the product and first two of the model,
  upper-cased,
* a 1-based sequence, zero-padded to four digits. Past 9999 the field simply
  grows wider, so parse it as variable width.

Caller-supplied identifiers (typed or scanned serials) go through
:func:`validate_identifiers` instead.
"""

from __future__ import annotations

import re
from typing import Iterable

from ..core.exceptions import DuplicateIdentifierError, IdentifierRejection, ValidationError
from ..core.serials import normalize_serial

TYPE_PREFIXES = {
    "new": "NEW",
    "inward": "NEW",
    "refurbish": "REF",
    "replace": "RPL",
    "outward": "OUT",
}
DEFAULT_TYPE_PREFIX = "ORD"
SEQUENCE_WIDTH = 4

REASON_BLANK = "blank"
REASON_DUPLICATE_IN_ORDER = "duplicate_in_order"
REASON_ALREADY_EXISTS = "already_exists"


def type_prefix(order_type: str | None) -> str:
    return TYPE_PREFIXES.get((order_type or "").strip().lower(), DEFAULT_TYPE_PREFIX)


def identifier_prefix(order_type: str | None, product: str | None, model: str | None) -> str:
    product_part = (product or "")[:3].upper()
    model_part = (model or "")[:2].upper()
    return f"{type_prefix(order_type)}-{product_part}{model_part}-"


def format_identifier(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def generate_identifiers(
    order_type: str | None,
    product: str | None,
    model: str | None,
    quantity: int,
    *,
    start: int = 1,
) -> list[str]:
    """Return ``quantity`` sequential identifiers beginning at ``start``."""

    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if start < 1:
        raise ValueError("start must be >= 1")
    prefix = identifier_prefix(order_type, product, model)
    return [format_identifier(prefix, seq) for seq in range(start, start + quantity)]


def sequence_number(identifier: str, prefix: str) -> int | None:
    """Extract the numeric sequence from a generated identifier, if it matches ``prefix``."""

    if not identifier.startswith(prefix):
        return None
    tail = identifier[len(prefix):]
    if not re.fullmatch(r"\d+", tail):
        return None
    return int(tail)


def next_sequence_start(prefix: str, existing: Iterable[str]) -> int:
    """First sequence number after every identifier already issued under ``prefix``."""

    highest = 0
    for identifier in existing:
        seq = sequence_number(identifier, prefix)
        if seq is not None and seq > highest:
            highest = seq
    return highest + 1


def validate_identifiers(
    values: Iterable[str | None],
    *,
    quantity: int | None = None,
    existing: Iterable[str] = (),
) -> list[str]:
    """Trim caller-supplied identifiers and reject blanks and duplicates.

    Duplicate detection is an exact, case-sensitive comparison of trimmed
    values, both within the batch and against ``existing``. Every offending
    unit is reported; nothing is dropped or merged silently.
    """

    cleaned = [normalize_serial(value) for value in values]
    if quantity is not None and len(cleaned) != quantity:
        raise ValidationError(
            f"expected {quantity} identifiers, received {len(cleaned)}",
            details={"expected": quantity, "received": len(cleaned)},
        )

    blanks = [
        IdentifierRejection(index=index, value=value, reason=REASON_BLANK)
        for index, value in enumerate(cleaned)
        if not value
    ]
    if blanks:
        raise ValidationError(
            "identifiers must not be empty",
            details={"rejected": [{"index": r.index, "value": r.value, "reason": r.reason} for r in blanks]},
        )

    known = set(existing)
    seen: set[str] = set()
    rejections: list[IdentifierRejection] = []
    for index, value in enumerate(cleaned):
        if value in seen:
            rejections.append(IdentifierRejection(index=index, value=value, reason=REASON_DUPLICATE_IN_ORDER))
        elif value in known:
            rejections.append(IdentifierRejection(index=index, value=value, reason=REASON_ALREADY_EXISTS))
        seen.add(value)
    if rejections:
        raise DuplicateIdentifierError(rejections)
    return cleaned


__all__ = [
    "DEFAULT_TYPE_PREFIX",
    "SEQUENCE_WIDTH",
    "TYPE_PREFIXES",
    "format_identifier",
    "generate_identifiers",
    "identifier_prefix",
    "next_sequence_start",
    "sequence_number",
    "type_prefix",
    "validate_identifiers",
]
