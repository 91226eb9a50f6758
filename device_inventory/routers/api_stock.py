from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..core.catalog import (
    ALL,
    DEVICE_STATUSES,
    MODELS_BY_PRODUCT,
    ORDER_TYPE_DIRECTIONS,
    PRODUCTS,
    WAREHOUSES,
)
from ..db.session import get_db
from ..schemas.stock import CatalogOut, OverallStockOut, WarehouseSummaryOut
from ..services.export import render_summary_csv, summary_export_filename
from ..services.stock import StockFilter, overall_stock, summarize_stock, warehouse_statistics

router = APIRouter(prefix="/api/v1", tags=["stock"])


def stock_filter(
    warehouse: str = ALL,
    product: str = ALL,
    model: str = ALL,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    include_deleted: bool = False,
) -> StockFilter:
    return StockFilter(
        warehouse=warehouse,
        product=product,
        model=model,
        date_from=date_from,
        date_to=date_to,
        include_deleted=include_deleted,
    )


@router.get("/stock/summary", response_model=list[WarehouseSummaryOut])
def api_summary(filters: StockFilter = Depends(stock_filter), db: Session = Depends(get_db)):
    # ``available`` is a property, which dataclasses.asdict would drop.
    return [WarehouseSummaryOut.model_validate(summary) for summary in summarize_stock(db, filters)]


@router.get("/stock/overall", response_model=OverallStockOut)
def api_overall(filters: StockFilter = Depends(stock_filter), db: Session = Depends(get_db)):
    return OverallStockOut.model_validate(overall_stock(db, filters))


@router.get("/stock/summary.csv")
def api_summary_csv(filters: StockFilter = Depends(stock_filter), db: Session = Depends(get_db)) -> Response:
    body = render_summary_csv(overall_stock(db, filters))
    headers = {"Content-Disposition": f'attachment; filename="{summary_export_filename()}"'}
    return Response(content=body, media_type="text/csv", headers=headers)


@router.get("/stock/warehouses/{name}", response_model=WarehouseSummaryOut)
def api_warehouse(name: str, db: Session = Depends(get_db)):
    return WarehouseSummaryOut.model_validate(warehouse_statistics(db, name))


@router.get("/catalog", response_model=CatalogOut)
def api_catalog():
    return {
        "warehouses": list(WAREHOUSES),
        "products": list(PRODUCTS),
        "models": {product: list(models) for product, models in MODELS_BY_PRODUCT.items()},
        "order_types": dict(ORDER_TYPE_DIRECTIONS),
        "statuses": list(DEVICE_STATUSES),
    }
