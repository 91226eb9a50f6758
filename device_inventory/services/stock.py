"""Stock aggregation over the order store.

Every query re-reads the orders; nothing here is cached. Unit counts come from
each order's identifier list rather than its ``quantity`` column, and
``available`` is inward minus outward without clamping: a negative value means
more stock has left a warehouse than was ever recorded arriving.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.catalog import (
    ALL,
    DIRECTION_INWARD,
    DIRECTION_OUTWARD,
    PRODUCTS,
    WAREHOUSES,
    canonical_model,
    canonical_product,
    canonical_warehouse,
    models_for_product,
)
from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.timestamps import coerce_datetime, parse_iso, to_iso, utcnow
from ..models.device import Device
from ..models.order import Order

DateBound = datetime | date | str | None


@dataclass(frozen=True)
class StockFilter:
    """Query filters. ``include_deleted`` switches to the archive: only deleted orders count."""

    warehouse: str = ALL
    product: str = ALL
    model: str = ALL
    date_from: DateBound = None
    date_to: DateBound = None
    include_deleted: bool = False


@dataclass(frozen=True)
class StockLevel:
    inward: int = 0
    outward: int = 0

    @property
    def available(self) -> int:
        return self.inward - self.outward


@dataclass(frozen=True)
class ModelStock:
    product: str
    model: str
    inward: int
    outward: int

    @property
    def available(self) -> int:
        return self.inward - self.outward


@dataclass(frozen=True)
class WarehouseSummary:
    warehouse: str
    total_orders: int
    total_devices: int
    total_quantity: int
    inward: dict[str, int]
    outward: dict[str, int]
    available: dict[str, int]
    order_types: dict[str, int]
    product_quantities: dict[str, int]
    models: tuple[ModelStock, ...]
    recent_order_count: int | None
    computed_at: str


@dataclass(frozen=True)
class OverallStock:
    totals: StockLevel
    models: tuple[ModelStock, ...]
    computed_at: str
    by_warehouse: dict[str, StockLevel] = field(default_factory=dict)


@dataclass(frozen=True)
class _ResolvedFilter:
    warehouses: tuple[str, ...]
    products: tuple[str, ...]
    product: str | None
    model: str | None
    start: datetime | None
    end: datetime | None
    deleted: bool


def _resolve(filters: StockFilter, tz: str) -> _ResolvedFilter:
    errors: dict[str, str] = {}

    if (filters.warehouse or ALL) == ALL:
        warehouses = WAREHOUSES
    else:
        match = canonical_warehouse(filters.warehouse)
        if match is None:
            errors["warehouse"] = "unknown warehouse"
            warehouses = ()
        else:
            warehouses = (match,)

    product: str | None = None
    if (filters.product or ALL) != ALL:
        product = canonical_product(filters.product)
        if product is None:
            errors["product"] = "unknown product"

    model: str | None = None
    if (filters.model or ALL) != ALL:
        if product:
            model = canonical_model(product, filters.model)
        else:
            model = next(
                (m for m in models_for_product(None) if m.casefold() == filters.model.strip().casefold()),
                None,
            )
        if model is None:
            errors["model"] = "unknown model"

    try:
        start = coerce_datetime(filters.date_from, tz)
        end = coerce_datetime(filters.date_to, tz, end_of_day=True)
    except ValueError:
        errors["date"] = "date bounds must be ISO-8601 dates or timestamps"
        start = end = None
    if start and end and start > end:
        errors["date"] = "date_from must not be after date_to"

    if errors:
        raise ValidationError("stock filter is invalid", details={"fields": errors})

    return _ResolvedFilter(
        warehouses=tuple(warehouses),
        products=(product,) if product else PRODUCTS,
        product=product,
        model=model,
        start=start,
        end=end,
        deleted=bool(filters.include_deleted),
    )


def _scoped_orders(db: Session, resolved: _ResolvedFilter) -> list[Order]:
    """Orders matching the deleted view, warehouse, product and model (no date filter)."""

    stmt = select(Order).where(
        Order.is_deleted == (1 if resolved.deleted else 0),
        Order.warehouse.in_(resolved.warehouses),
    )
    if resolved.product:
        stmt = stmt.where(Order.product == resolved.product)
    if resolved.model:
        stmt = stmt.where(Order.model == resolved.model)
    stmt = stmt.order_by(Order.created_at, Order.id)
    return list(db.execute(stmt).scalars().all())


def _in_range(order: Order, start: datetime | None, end: datetime | None, tz: str) -> bool:
    if start is None and end is None:
        return True
    when = parse_iso(order.order_date, tz)
    if when is None:
        return False
    if start and when < start:
        return False
    if end and when > end:
        return False
    return True


def _device_counts(db: Session, order_ids: Iterable[str], deleted: bool) -> dict[str, int]:
    ids = list(order_ids)
    if not ids:
        return {}
    counts: dict[str, int] = {}
    for start in range(0, len(ids), 500):
        stmt = (
            select(Device.order_id, func.count(Device.id))
            .where(Device.order_id.in_(ids[start:start + 500]), Device.is_deleted == (1 if deleted else 0))
            .group_by(Device.order_id)
        )
        counts.update({order_id: int(count) for order_id, count in db.execute(stmt).all()})
    return counts


def _model_rows(orders: Iterable[Order]) -> tuple[ModelStock, ...]:
    buckets: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
    for order in orders:
        bucket = buckets[(order.product, order.model)]
        if order.direction == DIRECTION_INWARD:
            bucket[0] += order.unit_count
        elif order.direction == DIRECTION_OUTWARD:
            bucket[1] += order.unit_count
    return tuple(
        ModelStock(product=product, model=model, inward=inward, outward=outward)
        for (product, model), (inward, outward) in sorted(buckets.items())
    )


def _summarize(
    warehouse: str,
    orders: list[Order],
    products: tuple[str, ...],
    device_counts: dict[str, int],
    recent: int | None,
    computed_at: str,
) -> WarehouseSummary:
    inward = {product: 0 for product in products}
    outward = {product: 0 for product in products}
    order_types: dict[str, int] = {}
    product_quantities = {product: 0 for product in products}

    for order in orders:
        units = order.unit_count
        if order.direction == DIRECTION_INWARD:
            inward[order.product] = inward.get(order.product, 0) + units
        elif order.direction == DIRECTION_OUTWARD:
            outward[order.product] = outward.get(order.product, 0) + units
        order_types[order.order_type] = order_types.get(order.order_type, 0) + 1
        product_quantities[order.product] = product_quantities.get(order.product, 0) + units

    available = {product: inward.get(product, 0) - outward.get(product, 0) for product in {**inward, **outward}}

    return WarehouseSummary(
        warehouse=warehouse,
        total_orders=len(orders),
        total_devices=sum(device_counts.get(order.id, 0) for order in orders),
        total_quantity=sum(order.quantity or 0 for order in orders),
        inward=inward,
        outward=outward,
        available=dict(sorted(available.items())),
        order_types=dict(sorted(order_types.items())),
        product_quantities=product_quantities,
        models=_model_rows(orders),
        recent_order_count=recent,
        computed_at=computed_at,
    )


def summarize_stock(
    db: Session,
    filters: StockFilter | None = None,
    *,
    now: datetime | None = None,
    include_recent: bool = True,
    recent_days: int | None = None,
    tz: str | None = None,
) -> list[WarehouseSummary]:
    """One summary per warehouse in scope, zero-filled where nothing matches.

    ``recent_order_count`` looks at a fixed trailing window ending at ``now``
    and ignores the filter's date range.
    """

    filters = filters or StockFilter()
    tz = tz or settings.TZ
    now = now or utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    resolved = _resolve(filters, tz)

    scoped = _scoped_orders(db, resolved)
    matched = [order for order in scoped if _in_range(order, resolved.start, resolved.end, tz)]
    device_counts = _device_counts(db, (order.id for order in matched), resolved.deleted)

    by_warehouse: dict[str, list[Order]] = defaultdict(list)
    for order in matched:
        by_warehouse[order.warehouse].append(order)

    recent_by_warehouse: dict[str, int] = defaultdict(int)
    if include_recent:
        window_start = now - timedelta(days=recent_days or settings.RECENT_ACTIVITY_DAYS)
        for order in scoped:
            if _in_range(order, window_start, now, tz):
                recent_by_warehouse[order.warehouse] += 1

    computed_at = to_iso(now)
    return [
        _summarize(
            warehouse,
            by_warehouse.get(warehouse, []),
            resolved.products,
            device_counts,
            recent_by_warehouse.get(warehouse, 0) if include_recent else None,
            computed_at,
        )
        for warehouse in resolved.warehouses
    ]


def overall_stock(
    db: Session,
    filters: StockFilter | None = None,
    *,
    now: datetime | None = None,
    tz: str | None = None,
) -> OverallStock:
    """Totals across every warehouse in scope plus the per product/model breakdown."""

    summaries = summarize_stock(db, filters, now=now, include_recent=False, tz=tz)
    inward = sum(sum(summary.inward.values()) for summary in summaries)
    outward = sum(sum(summary.outward.values()) for summary in summaries)

    merged: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
    for summary in summaries:
        for row in summary.models:
            bucket = merged[(row.product, row.model)]
            bucket[0] += row.inward
            bucket[1] += row.outward

    return OverallStock(
        totals=StockLevel(inward=inward, outward=outward),
        models=tuple(
            ModelStock(product=product, model=model, inward=values[0], outward=values[1])
            for (product, model), values in sorted(merged.items())
        ),
        computed_at=summaries[0].computed_at if summaries else to_iso(now or utcnow()),
        by_warehouse={
            summary.warehouse: StockLevel(
                inward=sum(summary.inward.values()),
                outward=sum(summary.outward.values()),
            )
            for summary in summaries
        },
    )


def warehouse_statistics(db: Session, warehouse: str, *, now: datetime | None = None) -> WarehouseSummary:
    """Unfiltered statistics for one warehouse, including recent activity."""

    return summarize_stock(db, StockFilter(warehouse=warehouse), now=now)[0]


__all__ = [
    "ModelStock",
    "OverallStock",
    "StockFilter",
    "StockLevel",
    "WarehouseSummary",
    "overall_stock",
    "summarize_stock",
    "warehouse_statistics",
]
