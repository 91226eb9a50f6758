"""Serial number clean-up helpers.

Serials arrive typed by hand or from a barcode scanner, so surrounding
whitespace and doubled spaces are common. Matching stays case-sensitive: two
serials that differ only by case are different devices.
"""

from __future__ import annotations

import re
from typing import Iterable

__all__ = ["normalize_serial", "normalize_serials", "split_scanned_payload"]


_WHITESPACE_RE = re.compile(r"\s+")
# A scanner run can deliver several codes at once, one per line or comma separated.
_SCAN_SEPARATOR_RE = re.compile(r"[\r\n,;\t]+")


def normalize_serial(raw: str | None) -> str:
    """Trim outer whitespace and squash internal runs of whitespace into one space."""

    if raw is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(raw).strip())


def normalize_serials(values: Iterable[str | None]) -> list[str]:
    return [normalize_serial(value) for value in values]


def split_scanned_payload(raw: str | None) -> list[str]:
    """Break a raw scanner payload into individual, non-empty serials."""

    if not raw:
        return []
    parts = (normalize_serial(part) for part in _SCAN_SEPARATOR_RE.split(raw))
    return [part for part in parts if part]
