"""Device store: one row per physical unit, derived from orders."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, desc, or_, select, update
from sqlalchemy.orm import Session

from ..core.catalog import (
    PRODUCT_TABLET,
    STATUS_MAINTENANCE,
    canonical_status,
    default_status_for,
)
from ..core.exceptions import ValidationError
from ..core.timestamps import utcnow_iso
from ..models.device import Device
from ..models.order import Order
from ..services.events import OrderEvent, OrderEventBus, OrderEventType
from .common import VIEW_ACTIVE, apply_view, write_transaction

logger = logging.getLogger(__name__)

# Descriptive fields copied verbatim from the owning order.
MIRRORED_FIELDS = (
    "order_type",
    "sales_order",
    "deal_id",
    "nucleus_id",
    "school_name",
    "product",
    "model",
    "quantity",
    "sd_card_size",
    "profile_id",
    "location",
    "warehouse",
)

SEARCH_FIELDS = (
    Device.serial_number,
    Device.order_id,
    Device.sales_order,
    Device.deal_id,
    Device.nucleus_id,
    Device.school_name,
    Device.product,
    Device.model,
    Device.warehouse,
    Device.location,
    Device.order_type,
    Device.sd_card_size,
    Device.profile_id,
)

# Keep IN (...) lists comfortably under SQLite's bound-parameter limit.
_IN_CHUNK = 500


def _recency_order(stmt):
    # Devices of one order share a timestamp; the id keeps them in insertion order.
    return stmt.order_by(desc(Device.created_at), Device.id)


def create_devices_for_order(db: Session, order: Order) -> list[Device]:
    """Stage one device per identifier on ``order``. The caller commits."""

    status = default_status_for(order.order_type)
    devices: list[Device] = []
    for serial in order.serial_numbers:
        device = Device(
            serial_number=serial,
            order_id=order.id,
            status=status,
            created_at=order.created_at,
            updated_at=order.updated_at,
            is_deleted=order.is_deleted or 0,
            deleted_at=order.deleted_at,
        )
        for field in MIRRORED_FIELDS:
            setattr(device, field, getattr(order, field))
        if order.product != PRODUCT_TABLET:
            device.sd_card_size = None
            device.profile_id = None
        db.add(device)
        devices.append(device)
    return devices


def existing_serials(db: Session, candidates: Iterable[str], *, exclude_order_id: str | None = None) -> set[str]:
    """Return which ``candidates`` are already taken by some device, deleted or not."""

    values = [value for value in dict.fromkeys(candidates) if value]
    found: set[str] = set()
    for start in range(0, len(values), _IN_CHUNK):
        chunk = values[start:start + _IN_CHUNK]
        stmt = select(Device.serial_number).where(Device.serial_number.in_(chunk))
        if exclude_order_id is not None:
            stmt = stmt.where(or_(Device.order_id.is_(None), Device.order_id != exclude_order_id))
        found.update(db.execute(stmt).scalars().all())
    return found


def serials_with_prefix(db: Session, prefix: str) -> list[str]:
    stmt = select(Device.serial_number).where(Device.serial_number.startswith(prefix, autoescape=True))
    return list(db.execute(stmt).scalars().all())


def get_device(db: Session, serial_number: str) -> Device | None:
    stmt = select(Device).where(Device.serial_number == serial_number)
    return db.execute(stmt).scalars().first()


def list_devices_by_recency(
    db: Session,
    view: str | None = VIEW_ACTIVE,
    limit: int | None = None,
    offset: int = 0,
) -> list[Device]:
    """Newest devices first; devices created together stay in insertion order."""

    stmt = _recency_order(apply_view(select(Device), Device, view))
    if limit is not None:
        stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(offset)
    return list(db.execute(stmt).scalars().all())


def search_devices(db: Session, term: str | None, view: str | None = VIEW_ACTIVE) -> list[Device]:
    """Case-insensitive substring match over serial, order id and copied order fields."""

    needle = (term or "").strip()
    stmt = apply_view(select(Device), Device, view)
    if needle:
        stmt = stmt.where(or_(*(column.icontains(needle, autoescape=True) for column in SEARCH_FIELDS)))
    return list(db.execute(_recency_order(stmt)).scalars().all())


def devices_by_warehouse(db: Session, warehouse: str, view: str | None = VIEW_ACTIVE) -> list[Device]:
    stmt = apply_view(select(Device).where(Device.warehouse == warehouse), Device, view)
    return list(db.execute(_recency_order(stmt)).scalars().all())


def devices_for_order(db: Session, order_id: str) -> list[Device]:
    stmt = select(Device).where(Device.order_id == order_id).order_by(Device.id)
    return list(db.execute(stmt).scalars().all())


def delete_devices_for_order(db: Session, order_id: str) -> int:
    """Hard-remove an order's devices ahead of regenerating them. The caller commits."""

    result = db.execute(delete(Device).where(Device.order_id == order_id))
    db.flush()
    return result.rowcount or 0


def set_device_status(db: Session, serial_number: str, status: str) -> Device | None:
    device = get_device(db, serial_number)
    if device is None:
        return None
    canonical = canonical_status(status)
    if not canonical:
        raise ValidationError(f"unknown device status: {status}", details={"status": status})
    with write_transaction(db, "update device status"):
        device.status = canonical
        device.updated_at = utcnow_iso()
    db.refresh(device)
    return device


def _on_order_soft_deleted(db: Session, event: OrderEvent) -> None:
    result = db.execute(
        update(Device)
        .where(Device.order_id == event.order.id)
        .values(is_deleted=1, deleted_at=event.occurred_at, updated_at=event.occurred_at)
    )
    logger.info(
        "devices.archived",
        extra={"extra_data": {"order_id": event.order.id, "devices": result.rowcount}},
    )


def _on_order_restored(db: Session, event: OrderEvent) -> None:
    result = db.execute(
        update(Device)
        .where(Device.order_id == event.order.id)
        .values(is_deleted=0, deleted_at=None, updated_at=event.occurred_at)
    )
    logger.info(
        "devices.restored",
        extra={"extra_data": {"order_id": event.order.id, "devices": result.rowcount}},
    )


def _on_order_updated(db: Session, event: OrderEvent) -> None:
    order = event.order
    for device in devices_for_order(db, order.id):
        for field in MIRRORED_FIELDS:
            setattr(device, field, getattr(order, field))
        if order.product != PRODUCT_TABLET:
            device.sd_card_size = None
            device.profile_id = None
        if device.status != STATUS_MAINTENANCE:
            device.status = default_status_for(order.order_type)
        device.updated_at = event.occurred_at


def wire_device_handlers(bus: OrderEventBus) -> OrderEventBus:
    """Subscribe the device store to order lifecycle events."""

    bus.register_handler(OrderEventType.SOFT_DELETED, _on_order_soft_deleted)
    bus.register_handler(OrderEventType.RESTORED, _on_order_restored)
    bus.register_handler(OrderEventType.UPDATED, _on_order_updated)
    return bus


def build_event_bus() -> OrderEventBus:
    return wire_device_handlers(OrderEventBus())


__all__ = [
    "MIRRORED_FIELDS",
    "build_event_bus",
    "create_devices_for_order",
    "delete_devices_for_order",
    "devices_by_warehouse",
    "devices_for_order",
    "existing_serials",
    "get_device",
    "list_devices_by_recency",
    "search_devices",
    "serials_with_prefix",
    "set_device_status",
    "wire_device_handlers",
]
