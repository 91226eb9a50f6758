from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ModelStockOut(BaseModel):
    product: str
    model: str
    inward: int
    outward: int
    available: int

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class StockLevelOut(BaseModel):
    inward: int
    outward: int
    available: int

    model_config = ConfigDict(from_attributes=True)


class WarehouseSummaryOut(BaseModel):
    warehouse: str
    total_orders: int
    total_devices: int
    total_quantity: int
    inward: dict[str, int]
    outward: dict[str, int]
    available: dict[str, int]
    order_types: dict[str, int]
    product_quantities: dict[str, int]
    models: list[ModelStockOut]
    recent_order_count: Optional[int] = None
    computed_at: str

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class OverallStockOut(BaseModel):
    totals: StockLevelOut
    models: list[ModelStockOut]
    by_warehouse: dict[str, StockLevelOut]
    computed_at: str

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class CatalogOut(BaseModel):
    warehouses: list[str]
    products: list[str]
    models: dict[str, list[str]]
    order_types: dict[str, str]
    statuses: list[str]
