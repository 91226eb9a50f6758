"""Comma-separated exports for device lists and stock summaries.

Fields containing a comma, double quote, CR or LF are wrapped in double quotes
with inner quotes doubled. Every line, the last included, ends with ``\\n``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence

from ..core.catalog import PRODUCT_TABLET
from ..core.config import settings
from ..core.timestamps import format_local
from ..models.device import Device
from .stock import OverallStock, WarehouseSummary

LOGGER = logging.getLogger(__name__)

CSV_SEPARATOR = ","
LINE_TERMINATOR = "\n"
_NEEDS_QUOTING = (",", '"', "\n", "\r")

DEVICE_EXPORT_HEADER = (
    "Created At",
    "Order Type",
    "Order ID",
    "Sales Order",
    "Deal ID",
    "Nucleus ID",
    "School Name",
    "Product",
    "Model",
    "Quantity",
    "Device Number",
    "SD Card Size",
    "Profile ID",
    "Location",
    "Warehouse",
)
SUMMARY_EXPORT_HEADER = ("Product", "Model", "Inward", "Outward", "Available")
WAREHOUSE_EXPORT_HEADER = ("Warehouse", "Product", "Inward", "Outward", "Available")


class TextSink(Protocol):
    def write(self, text: str) -> Any: ...


def escape_field(value: object) -> str:
    if value is None:
        return ""
    text = str(value)
    if any(marker in text for marker in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def render_row(fields: Iterable[object]) -> str:
    return CSV_SEPARATOR.join(escape_field(value) for value in fields)


def iter_lines(header: Sequence[object], rows: Iterable[Sequence[object]]) -> Iterable[str]:
    yield render_row(header) + LINE_TERMINATOR
    for row in rows:
        yield render_row(row) + LINE_TERMINATOR


def render_csv(header: Sequence[object], rows: Iterable[Sequence[object]]) -> str:
    return "".join(iter_lines(header, rows))


def write_csv(sink: TextSink, header: Sequence[object], rows: Iterable[Sequence[object]]) -> int:
    """Stream the CSV text into ``sink``; returns the number of rows written."""

    count = -1
    for count, line in enumerate(iter_lines(header, rows)):
        sink.write(line)
    return count


def device_row(device: Device, tz: str | None = None) -> list[object]:
    tablet = device.product == PRODUCT_TABLET
    return [
        format_local(device.created_at, tz or settings.TZ),
        device.order_type,
        device.order_id,
        device.sales_order,
        device.deal_id,
        device.nucleus_id,
        device.school_name,
        device.product,
        device.model,
        device.quantity,
        device.serial_number,
        device.sd_card_size if tablet else None,
        device.profile_id if tablet else None,
        device.location,
        device.warehouse,
    ]


def render_devices_csv(devices: Iterable[Device], tz: str | None = None) -> str:
    return render_csv(DEVICE_EXPORT_HEADER, (device_row(device, tz) for device in devices))


def summary_rows(overall: OverallStock) -> list[list[object]]:
    return [[row.product, row.model, row.inward, row.outward, row.available] for row in overall.models]


def render_summary_csv(overall: OverallStock) -> str:
    return render_csv(SUMMARY_EXPORT_HEADER, summary_rows(overall))


def warehouse_rows(summaries: Iterable[WarehouseSummary]) -> list[list[object]]:
    rows: list[list[object]] = []
    for summary in summaries:
        for product in summary.available:
            rows.append(
                [
                    summary.warehouse,
                    product,
                    summary.inward.get(product, 0),
                    summary.outward.get(product, 0),
                    summary.available[product],
                ]
            )
    return rows


def render_warehouse_csv(summaries: Iterable[WarehouseSummary]) -> str:
    return render_csv(WAREHOUSE_EXPORT_HEADER, warehouse_rows(summaries))


def device_export_filename(now: datetime | None = None) -> str:
    return f"devices_export_{(now or datetime.now()).strftime('%Y%m%d_%H%M%S')}.csv"


def summary_export_filename(now: datetime | None = None) -> str:
    return f"warehouse-summary-{(now or datetime.now()).strftime('%Y-%m-%d')}.csv"


def export_devices_to_file(
    devices: Iterable[Device],
    directory: Path | None = None,
    *,
    now: datetime | None = None,
    tz: str | None = None,
) -> Path:
    """Write the device CSV under ``directory`` (default: the configured export dir)."""

    target_dir = directory or settings.export_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / device_export_filename(now)
    with path.open("w", encoding="utf-8", newline="") as handle:
        written = write_csv(handle, DEVICE_EXPORT_HEADER, (device_row(device, tz) for device in devices))
    LOGGER.info("devices.exported", extra={"extra_data": {"path": str(path), "rows": written}})
    return path


__all__ = [
    "DEVICE_EXPORT_HEADER",
    "SUMMARY_EXPORT_HEADER",
    "WAREHOUSE_EXPORT_HEADER",
    "device_export_filename",
    "device_row",
    "escape_field",
    "export_devices_to_file",
    "render_csv",
    "render_devices_csv",
    "render_row",
    "render_summary_csv",
    "render_warehouse_csv",
    "summary_export_filename",
    "summary_rows",
    "write_csv",
]
