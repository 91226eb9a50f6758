"""Fixed catalogs for warehouses, products, models and order types."""

from __future__ import annotations

ALL = "All"

WAREHOUSES = (
    "Trichy",
    "Bangalore",
    "Hyderabad",
    "Kolkata",
    "Bhiwandi",
    "Ghaziabad",
    "Zirakpur",
    "Indore",
    "Jaipur",
)

PRODUCT_TABLET = "Tablet"
PRODUCT_TV = "TV"
PRODUCTS = (PRODUCT_TABLET, PRODUCT_TV)

TABLET_MODELS = ("TB301FU", "TB301XU", "TB-8505F", "TB-7306F", "TB-7306X", "TB-7305X")
TV_MODELS = (
    'Hyundai TV - 39"',
    'Hyundai TV - 43"',
    'Hyundai TV - 50"',
    'Hyundai TV - 55"',
    'Hyundai TV - 65"',
    'Xentec TV - 39"',
    'Xentec TV - 43"',
)
MODELS_BY_PRODUCT = {
    PRODUCT_TABLET: TABLET_MODELS,
    PRODUCT_TV: TV_MODELS,
}

DIRECTION_INWARD = "Inward"
DIRECTION_OUTWARD = "Outward"

# Business categories fold into one of the two stock movement directions.
ORDER_TYPE_DIRECTIONS = {
    "Inward": DIRECTION_INWARD,
    "Outward": DIRECTION_OUTWARD,
    "New": DIRECTION_INWARD,
    "Refurbish": DIRECTION_INWARD,
    "Replace": DIRECTION_OUTWARD,
}
ORDER_TYPES = tuple(ORDER_TYPE_DIRECTIONS)

STATUS_AVAILABLE = "Available"
STATUS_ASSIGNED = "Assigned"
STATUS_MAINTENANCE = "Maintenance"
DEVICE_STATUSES = (STATUS_AVAILABLE, STATUS_ASSIGNED, STATUS_MAINTENANCE)

# Tablet-only attributes are blanked for every other product.
TABLET_ONLY_FIELDS = ("sd_card_size", "profile_id")


def _match(value: str | None, choices: tuple[str, ...] | list[str]) -> str | None:
    cleaned = (value or "").strip()
    if not cleaned:
        return None
    folded = cleaned.casefold()
    for choice in choices:
        if choice.casefold() == folded:
            return choice
    return None


def canonical_warehouse(value: str | None) -> str | None:
    return _match(value, WAREHOUSES)


def canonical_product(value: str | None) -> str | None:
    return _match(value, PRODUCTS)


def canonical_order_type(value: str | None) -> str | None:
    return _match(value, ORDER_TYPES)


def canonical_status(value: str | None) -> str | None:
    return _match(value, DEVICE_STATUSES)


def models_for_product(product: str | None) -> tuple[str, ...]:
    """Models for one product, or every model when ``product`` is ``All``/unknown."""

    canonical = canonical_product(product)
    if canonical:
        return MODELS_BY_PRODUCT[canonical]
    return TABLET_MODELS + TV_MODELS


def canonical_model(product: str | None, value: str | None) -> str | None:
    canonical = canonical_product(product)
    if not canonical:
        return None
    return _match(value, MODELS_BY_PRODUCT[canonical])


def direction_for(order_type: str | None) -> str | None:
    canonical = canonical_order_type(order_type)
    if not canonical:
        return None
    return ORDER_TYPE_DIRECTIONS[canonical]


def default_status_for(order_type: str | None) -> str:
    """Inward stock lands as Available, outward stock as Assigned."""

    if direction_for(order_type) == DIRECTION_OUTWARD:
        return STATUS_ASSIGNED
    return STATUS_AVAILABLE


__all__ = [
    "ALL",
    "DEVICE_STATUSES",
    "DIRECTION_INWARD",
    "DIRECTION_OUTWARD",
    "MODELS_BY_PRODUCT",
    "ORDER_TYPES",
    "ORDER_TYPE_DIRECTIONS",
    "PRODUCTS",
    "PRODUCT_TABLET",
    "PRODUCT_TV",
    "STATUS_ASSIGNED",
    "STATUS_AVAILABLE",
    "STATUS_MAINTENANCE",
    "TABLET_MODELS",
    "TABLET_ONLY_FIELDS",
    "TV_MODELS",
    "WAREHOUSES",
    "canonical_model",
    "canonical_order_type",
    "canonical_product",
    "canonical_status",
    "canonical_warehouse",
    "default_status_for",
    "direction_for",
    "models_for_product",
]
