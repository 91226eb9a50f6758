from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class DeviceOut(BaseModel):
    id: int
    serial_number: str
    order_id: Optional[str]
    order_type: Optional[str] = None
    sales_order: Optional[str] = None
    deal_id: Optional[str] = None
    nucleus_id: Optional[str] = None
    school_name: Optional[str] = None
    product: str
    model: str
    quantity: Optional[int] = None
    sd_card_size: Optional[str] = None
    profile_id: Optional[str] = None
    location: Optional[str] = None
    warehouse: str
    status: str
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
    is_deleted: bool

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class DeviceStatusUpdate(BaseModel):
    status: str
