"""In-process notifications emitted by the order store.

The order store announces lifecycle changes here; the device store subscribes
and keeps per-unit records in step. Handlers run synchronously inside the
caller's session so the cascade commits (or rolls back) with the order change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from ..models.order import Order

logger = logging.getLogger(__name__)


class OrderEventType(str, Enum):
    SOFT_DELETED = "order.soft_deleted"
    RESTORED = "order.restored"
    UPDATED = "order.updated"


@dataclass(frozen=True)
class OrderEvent:
    event_type: OrderEventType
    order: "Order"
    occurred_at: str


Handler = Callable[[Session, OrderEvent], None]


class OrderEventBus:
    def __init__(self) -> None:
        self._handlers: dict[OrderEventType, list[Handler]] = {}

    def register_handler(self, event_type: OrderEventType, handler: Handler) -> None:
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def handlers_for(self, event_type: OrderEventType) -> list[Handler]:
        return list(self._handlers.get(event_type, []))

    def publish(self, db: Session, event: OrderEvent) -> int:
        """Deliver ``event`` to every handler; exceptions propagate to the caller."""

        handlers = self.handlers_for(event.event_type)
        if not handlers:
            logger.warning("No handler registered for %s", event.event_type.value)
        for handler in handlers:
            handler(db, event)
        logger.debug(
            "order.event",
            extra={"extra_data": {"event": event.event_type.value, "order_id": event.order.id, "handlers": len(handlers)}},
        )
        return len(handlers)


__all__ = ["Handler", "OrderEvent", "OrderEventBus", "OrderEventType"]
