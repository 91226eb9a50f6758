from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.catalog import canonical_warehouse
from ..core.exceptions import NotFoundError
from ..crud.common import normalize_view
from ..crud.orders import (
    create_order,
    get_order,
    restore_order,
    search_orders,
    soft_delete_order,
    unique_warehouses,
    update_order,
)
from ..db.session import get_db
from ..deps.services import get_event_bus, get_order_ids
from ..schemas.order import OrderCreate, OrderOut, OrderUpdate
from ..services.events import OrderEventBus
from ..services.order_ids import IdAllocator

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.get("", response_model=list[OrderOut])
def api_list(
    q: Optional[str] = None,
    view: str = "active",
    warehouse: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    orders = search_orders(db, q, view=normalize_view(view))
    if warehouse:
        name = canonical_warehouse(warehouse) or warehouse.strip()
        orders = [order for order in orders if order.warehouse == name]
    return orders[offset:offset + limit]


@router.get("/warehouses", response_model=list[str])
def api_warehouses(mode: Optional[str] = None, view: str = "all", db: Session = Depends(get_db)):
    return unique_warehouses(db, mode=mode, view=normalize_view(view))


@router.post("", response_model=OrderOut, status_code=201)
def api_create(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    allocator: IdAllocator | None = Depends(get_order_ids),
):
    return create_order(db, payload.model_dump(exclude_none=True), allocator=allocator)


@router.get("/{order_id}", response_model=OrderOut)
def api_get(order_id: str, db: Session = Depends(get_db)):
    order = get_order(db, order_id)
    if not order:
        raise NotFoundError("Order not found", details={"id": order_id})
    return order


@router.patch("/{order_id}", response_model=OrderOut)
def api_update(
    order_id: str,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    bus: OrderEventBus = Depends(get_event_bus),
):
    order = update_order(db, order_id, payload.model_dump(exclude_unset=True), bus=bus)
    if not order:
        raise NotFoundError("Order not found", details={"id": order_id})
    return order


@router.delete("/{order_id}")
def api_delete(order_id: str, db: Session = Depends(get_db), bus: OrderEventBus = Depends(get_event_bus)):
    if not soft_delete_order(db, order_id, bus=bus):
        raise NotFoundError("Order not found", details={"id": order_id})
    return {"status": "deleted", "id": order_id}


@router.post("/{order_id}/restore", response_model=OrderOut)
def api_restore(order_id: str, db: Session = Depends(get_db), bus: OrderEventBus = Depends(get_event_bus)):
    if not restore_order(db, order_id, bus=bus):
        raise NotFoundError("Order not found", details={"id": order_id})
    return get_order(db, order_id)
