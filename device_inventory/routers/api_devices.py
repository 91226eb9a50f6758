from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..core.catalog import canonical_warehouse
from ..core.exceptions import NotFoundError
from ..crud.common import normalize_view
from ..crud.devices import get_device, search_devices, set_device_status
from ..db.session import get_db
from ..schemas.device import DeviceOut, DeviceStatusUpdate
from ..services.export import device_export_filename, render_devices_csv

router = APIRouter(prefix="/api/v1/devices", tags=["devices"])


def _filtered(db: Session, q: Optional[str], view: str, warehouse: Optional[str]):
    devices = search_devices(db, q, view=normalize_view(view))
    if warehouse:
        name = canonical_warehouse(warehouse) or warehouse.strip()
        devices = [device for device in devices if device.warehouse == name]
    return devices


@router.get("", response_model=list[DeviceOut])
def api_list(
    q: Optional[str] = None,
    view: str = "active",
    warehouse: Optional[str] = None,
    limit: int = 500,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return _filtered(db, q, view, warehouse)[offset:offset + limit]


@router.get("/export.csv")
def api_export(
    q: Optional[str] = None,
    view: str = "active",
    warehouse: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Response:
    body = render_devices_csv(_filtered(db, q, view, warehouse))
    headers = {"Content-Disposition": f'attachment; filename="{device_export_filename()}"'}
    return Response(content=body, media_type="text/csv", headers=headers)


@router.get("/{serial_number}", response_model=DeviceOut)
def api_get(serial_number: str, db: Session = Depends(get_db)):
    device = get_device(db, serial_number)
    if not device:
        raise NotFoundError("Device not found", details={"serial_number": serial_number})
    return device


@router.patch("/{serial_number}/status", response_model=DeviceOut)
def api_set_status(serial_number: str, payload: DeviceStatusUpdate, db: Session = Depends(get_db)):
    device = set_device_status(db, serial_number, payload.status)
    if not device:
        raise NotFoundError("Device not found", details={"serial_number": serial_number})
    return device
