"""Request dependencies that hand routers the app-wide allocator and event bus."""

from __future__ import annotations

from fastapi import Request

from ..crud.devices import build_event_bus
from ..services.events import OrderEventBus
from ..services.order_ids import IdAllocator


def get_order_ids(request: Request) -> IdAllocator | None:
    # ``None`` lets the order store fall back to its default allocator.
    return getattr(request.app.state, "order_ids", None)


def get_event_bus(request: Request) -> OrderEventBus:
    bus = getattr(request.app.state, "order_events", None)
    if bus is None:
        bus = build_event_bus()
        request.app.state.order_events = bus
    return bus
