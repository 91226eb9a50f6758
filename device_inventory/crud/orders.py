"""Order store: create, update, archive and search bulk stock orders.

Creating an order expands its quantity into per-unit identifiers and stages a
device row for each one; the order and its devices are committed together.
"""

from __future__ import annotations

import logging

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..core.catalog import (
    PRODUCT_TABLET,
    TABLET_ONLY_FIELDS,
    WAREHOUSES,
    canonical_model,
    canonical_order_type,
    canonical_product,
    canonical_warehouse,
)
from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.serials import normalize_serials, split_scanned_payload
from ..core.timestamps import parse_iso, to_iso, utcnow_iso
from ..models.order import Order
from ..services.events import OrderEvent, OrderEventBus, OrderEventType
from ..services.identifiers import (
    generate_identifiers,
    identifier_prefix,
    next_sequence_start,
    validate_identifiers,
)
from ..services.order_ids import IdAllocator, SequenceAllocator
from .common import VIEW_ACTIVE, VIEW_ALL, apply_view, clean_text, write_transaction
from .devices import (
    build_event_bus,
    create_devices_for_order,
    delete_devices_for_order,
    existing_serials,
    serials_with_prefix,
)

logger = logging.getLogger(__name__)

OPTIONAL_TEXT_FIELDS = (
    "sales_order",
    "deal_id",
    "nucleus_id",
    "school_name",
    "sd_card_size",
    "profile_id",
    "location",
)


def _coerce_quantity(value: object) -> int:
    if isinstance(value, bool):
        raise ValidationError("quantity must be a positive integer", details={"quantity": value})
    if isinstance(value, str):
        value = value.strip()
    try:
        quantity = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError("quantity must be a positive integer", details={"quantity": value}) from None
    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer", details={"quantity": quantity})
    return quantity


def _normalize_order_date(value: object) -> str | None:
    text = clean_text(value)
    if text is None:
        return None
    try:
        parsed = parse_iso(text, settings.TZ)
    except ValueError:
        raise ValidationError("order_date must be an ISO-8601 timestamp", details={"order_date": text}) from None
    return to_iso(parsed)


def _validated_fields(payload: dict, current: Order | None = None) -> dict:
    """Merge ``payload`` over ``current`` and validate the result.

    Raises ``ValidationError`` naming every missing or unknown field before any
    row is touched.
    """

    def pick(key: str) -> object:
        if key in payload:
            return payload.get(key)
        return getattr(current, key, None) if current is not None else None

    errors: dict[str, str] = {}
    order_type = canonical_order_type(clean_text(pick("order_type")))
    if not order_type:
        errors["order_type"] = "missing" if not clean_text(pick("order_type")) else "unknown order type"

    product = canonical_product(clean_text(pick("product")))
    if not product:
        errors["product"] = "missing" if not clean_text(pick("product")) else "unknown product"

    raw_model = clean_text(pick("model"))
    model = canonical_model(product, raw_model) if product else None
    if not raw_model:
        errors["model"] = "missing"
    elif product and not model:
        errors["model"] = f"not a {product} model"

    raw_warehouse = clean_text(pick("warehouse"))
    warehouse = canonical_warehouse(raw_warehouse)
    if not warehouse:
        errors["warehouse"] = "missing" if not raw_warehouse else "unknown warehouse"

    quantity: int | None = None
    try:
        quantity = _coerce_quantity(pick("quantity"))
    except ValidationError:
        errors["quantity"] = "must be a positive integer"

    if errors:
        raise ValidationError("order is invalid", details={"fields": errors})

    fields: dict[str, object] = {
        "order_type": order_type,
        "product": product,
        "model": model,
        "warehouse": warehouse,
        "quantity": quantity,
    }
    for key in OPTIONAL_TEXT_FIELDS:
        fields[key] = clean_text(pick(key))
    if product != PRODUCT_TABLET:
        for key in TABLET_ONLY_FIELDS:
            fields[key] = None

    if "order_date" in payload:
        order_date = _normalize_order_date(payload.get("order_date"))
        if order_date:
            fields["order_date"] = order_date
    return fields


def _supplied_serials(payload: dict) -> list[str] | None:
    """Identifiers supplied by the caller, from a list and/or a raw scan payload."""

    listed = payload.get("serial_numbers")
    scanned = payload.get("scanned_payload")
    if listed is None and not scanned:
        return None
    values = [str(item) if item is not None else "" for item in (listed or [])]
    values.extend(split_scanned_payload(scanned))
    return values


def _generate_serials(db: Session, fields: dict) -> list[str]:
    """Generate identifiers, continuing past any already issued under the same prefix."""

    prefix = identifier_prefix(fields["order_type"], fields["product"], fields["model"])
    start = next_sequence_start(prefix, serials_with_prefix(db, prefix))
    return generate_identifiers(
        fields["order_type"],
        fields["product"],
        fields["model"],
        fields["quantity"],
        start=start,
    )


def _allocate_id(db: Session, allocator: IdAllocator) -> str:
    order_id = allocator.allocate()
    while db.get(Order, order_id) is not None:
        order_id = allocator.allocate()
    return order_id


def _default_allocator(db: Session) -> SequenceAllocator:
    """A sequence allocator seeded past the highest stored id for the configured prefix."""

    prefix = settings.ORDER_ID_PREFIX
    stmt = (
        select(Order.id)
        .where(Order.id.startswith(f"{prefix}-", autoescape=True))
        .order_by(func.length(Order.id).desc(), Order.id.desc())
    )
    for order_id in db.execute(stmt).scalars():
        tail = order_id[len(prefix) + 1:]
        if tail.isascii() and tail.isdigit():
            return SequenceAllocator(prefix=prefix, start=int(tail) + 1)
    return SequenceAllocator(prefix=prefix)


def _bus(bus: OrderEventBus | None) -> OrderEventBus:
    return bus if bus is not None else build_event_bus()


def create_order(db: Session, payload: dict, *, allocator: IdAllocator | None = None) -> Order:
    """Validate, expand into identifiers and persist an order with its devices.

    Without caller-supplied serials the identifiers are generated. Supplied
    serials must be unique and match the quantity.
    """

    fields = _validated_fields(payload)
    supplied = _supplied_serials(payload)
    if supplied is not None:
        serials = validate_identifiers(
            supplied,
            quantity=fields["quantity"],
            existing=existing_serials(db, normalize_serials(supplied)),
        )
    else:
        serials = _generate_serials(db, fields)

    now = utcnow_iso()
    order = Order(
        id=_allocate_id(db, allocator or _default_allocator(db)),
        created_at=now,
        updated_at=now,
        order_date=fields.pop("order_date", None) or now,
        is_deleted=0,
        generated_serials=int(supplied is None),
        **fields,
    )
    order.serial_numbers = serials

    with write_transaction(db, "create order"):
        db.add(order)
        db.flush()
        create_devices_for_order(db, order)
        db.flush()
    db.refresh(order)
    logger.info(
        "order.created",
        extra={
            "extra_data": {
                "order_id": order.id,
                "order_type": order.order_type,
                "warehouse": order.warehouse,
                "units": order.unit_count,
            }
        },
    )
    return order


def get_order(db: Session, order_id: str) -> Order | None:
    return db.get(Order, order_id)


def list_orders(
    db: Session,
    view: str | None = VIEW_ACTIVE,
    limit: int | None = None,
    offset: int = 0,
) -> list[Order]:
    stmt = apply_view(select(Order), Order, view).order_by(desc(Order.created_at), desc(Order.id))
    if limit is not None:
        stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(offset)
    return list(db.execute(stmt).scalars().all())


def update_order(
    db: Session,
    order_id: str,
    payload: dict,
    *,
    bus: OrderEventBus | None = None,
) -> Order | None:
    """Overwrite mutable fields. Returns ``None`` when the order does not exist.

    A quantity change, or a type/product/model change on an order whose
    identifiers were generated, throws away the order's devices and issues a
    fresh set of generated identifiers; old identifiers are not carried over.
    Supplying ``serial_numbers`` replaces the identifier list outright. Any
    other change is copied onto the existing devices.
    """

    order = get_order(db, order_id)
    if order is None:
        return None

    fields = _validated_fields(payload, current=order)
    supplied = _supplied_serials(payload)
    quantity_changed = fields["quantity"] != order.quantity
    # Generated identifiers embed the type, product and model; keep them in step.
    prefix_changed = bool(order.generated_serials) and identifier_prefix(
        fields["order_type"], fields["product"], fields["model"]
    ) != identifier_prefix(order.order_type, order.product, order.model)
    regenerate = quantity_changed or prefix_changed

    replacement: list[str] | None = None
    if supplied is not None:
        replacement = validate_identifiers(
            supplied,
            quantity=fields["quantity"],
            existing=existing_serials(db, normalize_serials(supplied), exclude_order_id=order.id),
        )

    now = utcnow_iso()
    with write_transaction(db, "update order"):
        for key, value in fields.items():
            setattr(order, key, value)
        order.updated_at = now
        if replacement is not None or regenerate:
            delete_devices_for_order(db, order.id)
            if replacement is None:
                replacement = _generate_serials(db, fields)
                order.generated_serials = 1
            else:
                order.generated_serials = 0
            order.serial_numbers = replacement
            create_devices_for_order(db, order)
            db.flush()
        else:
            _bus(bus).publish(db, OrderEvent(OrderEventType.UPDATED, order, now))
    db.refresh(order)
    logger.info(
        "order.updated",
        extra={"extra_data": {"order_id": order.id, "regenerated": regenerate or supplied is not None}},
    )
    return order


def _set_deleted(db: Session, order_id: str, deleted: bool, bus: OrderEventBus | None) -> bool:
    order = get_order(db, order_id)
    if order is None:
        return False
    now = utcnow_iso()
    event_type = OrderEventType.SOFT_DELETED if deleted else OrderEventType.RESTORED
    with write_transaction(db, "archive order" if deleted else "restore order"):
        order.is_deleted = 1 if deleted else 0
        order.deleted_at = now if deleted else None
        order.updated_at = now
        db.flush()
        _bus(bus).publish(db, OrderEvent(event_type, order, now))
    logger.info(event_type.value, extra={"extra_data": {"order_id": order_id}})
    return True


def soft_delete_order(db: Session, order_id: str, *, bus: OrderEventBus | None = None) -> bool:
    """Archive an order and, through the event bus, its devices."""

    return _set_deleted(db, order_id, True, bus)


def restore_order(db: Session, order_id: str, *, bus: OrderEventBus | None = None) -> bool:
    return _set_deleted(db, order_id, False, bus)


def _matches(order: Order, needle: str) -> bool:
    for value in (order.id, order.sales_order, order.deal_id, order.nucleus_id, order.school_name):
        if value and needle in value.lower():
            return True
    return any(needle in serial.lower() for serial in order.serial_numbers)


def search_orders(db: Session, term: str | None, view: str | None = VIEW_ACTIVE) -> list[Order]:
    """Case-insensitive substring search; a blank term returns the whole view."""

    orders = list_orders(db, view=view)
    needle = (term or "").strip().lower()
    if not needle:
        return orders
    return [order for order in orders if _matches(order, needle)]


def orders_by_warehouse(db: Session, warehouse: str, view: str | None = VIEW_ACTIVE) -> list[Order]:
    stmt = (
        apply_view(select(Order).where(Order.warehouse == warehouse), Order, view)
        .order_by(desc(Order.created_at), desc(Order.id))
    )
    return list(db.execute(stmt).scalars().all())


def unique_warehouses(db: Session, mode: str | None = None, view: str | None = VIEW_ALL) -> list[str]:
    """Sorted warehouse names, from the fixed catalog or from stored orders."""

    mode = (mode or settings.WAREHOUSE_LIST_MODE).strip().lower()
    if mode == "catalog":
        return sorted(WAREHOUSES)
    if mode != "data":
        raise ValidationError("mode must be 'catalog' or 'data'", details={"mode": mode})
    stmt = apply_view(select(Order.warehouse).distinct(), Order, view)
    names = {name.strip() for name in db.execute(stmt).scalars().all() if name and name.strip()}
    return sorted(names)


__all__ = [
    "create_order",
    "get_order",
    "list_orders",
    "orders_by_warehouse",
    "restore_order",
    "search_orders",
    "soft_delete_order",
    "unique_warehouses",
    "update_order",
]
