"""Order id allocators.

Stores receive an allocator instead of reading a module-level counter, so two
stores (or two tests) never share numbering state.
"""

from __future__ import annotations

import threading
from typing import Protocol
from uuid import uuid4

from ..core.config import AppSettings


class IdAllocator(Protocol):
    def allocate(self) -> str: ...


class SequenceAllocator:
    """Hands out ``ORD-000001``, ``ORD-000002``, ... in a thread-safe way."""

    def __init__(self, prefix: str = "ORD", start: int = 1, width: int = 6) -> None:
        self.prefix = prefix
        self.width = width
        self._next = start
        self._lock = threading.Lock()

    def allocate(self) -> str:
        with self._lock:
            value = self._next
            self._next += 1
        return f"{self.prefix}-{value:0{self.width}d}"


class UuidAllocator:
    def allocate(self) -> str:
        return str(uuid4())


def allocator_from_settings(settings: AppSettings) -> IdAllocator:
    if settings.ORDER_ID_STRATEGY == "uuid":
        return UuidAllocator()
    return SequenceAllocator(prefix=settings.ORDER_ID_PREFIX)


__all__ = ["IdAllocator", "SequenceAllocator", "UuidAllocator", "allocator_from_settings"]
