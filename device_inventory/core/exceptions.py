"""Domain errors raised by the order and device stores.

Store functions raise these; the HTTP layer turns them into the JSON error
envelope from :mod:`device_inventory.core.errors`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


class InventoryError(Exception):
    code = "inventory_error"

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(InventoryError):
    """Input rejected before any store mutation."""

    code = "validation_error"


@dataclass(frozen=True)
class IdentifierRejection:
    """A single unit whose identifier could not be accepted."""

    index: int
    value: str
    reason: str


class DuplicateIdentifierError(InventoryError):
    """One or more supplied identifiers already exist.

    ``rejections`` names every offending unit so the caller can resupply just
    those entries.
    """

    code = "duplicate_identifier"

    def __init__(self, rejections: list[IdentifierRejection]) -> None:
        values = ", ".join(r.value for r in rejections)
        super().__init__(
            f"Duplicate identifiers: {values}",
            details={"rejected": [asdict(r) for r in rejections]},
        )
        self.rejections = rejections


class NotFoundError(InventoryError):
    code = "not_found"


class PersistenceError(InventoryError):
    """The database rejected or failed a write; ``__cause__`` holds the driver error."""

    code = "persistence_error"

    def __init__(self, message: str, *, conflict: bool = False, details: Any | None = None) -> None:
        super().__init__(message, details=details)
        self.conflict = conflict


__all__ = [
    "DuplicateIdentifierError",
    "IdentifierRejection",
    "InventoryError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
