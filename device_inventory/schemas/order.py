"""Pydantic schemas describing order payloads for the API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OrderBase(BaseModel):
    order_type: str
    product: str
    model: str
    quantity: int = Field(gt=0)
    warehouse: str
    sales_order: Optional[str] = None
    deal_id: Optional[str] = None
    nucleus_id: Optional[str] = None
    school_name: Optional[str] = None
    sd_card_size: Optional[str] = None
    profile_id: Optional[str] = None
    location: Optional[str] = None

    model_config = ConfigDict(protected_namespaces=())


class OrderCreate(OrderBase):
    # Leave both empty to have identifiers generated.
    serial_numbers: Optional[list[str]] = None
    scanned_payload: Optional[str] = None
    order_date: Optional[str] = None


class OrderUpdate(BaseModel):
    order_type: Optional[str] = None
    product: Optional[str] = None
    model: Optional[str] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    warehouse: Optional[str] = None
    sales_order: Optional[str] = None
    deal_id: Optional[str] = None
    nucleus_id: Optional[str] = None
    school_name: Optional[str] = None
    sd_card_size: Optional[str] = None
    profile_id: Optional[str] = None
    location: Optional[str] = None
    serial_numbers: Optional[list[str]] = None
    scanned_payload: Optional[str] = None
    order_date: Optional[str] = None

    model_config = ConfigDict(protected_namespaces=())

    @model_validator(mode="after")
    def validate_not_empty(self) -> "OrderUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field is required")
        return self


class OrderOut(OrderBase):
    id: str
    serial_numbers: list[str]
    generated_serials: bool
    order_date: str
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
    is_deleted: bool

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())
