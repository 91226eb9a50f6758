"""SQLAlchemy model for bulk inward/outward stock orders."""

from __future__ import annotations

import json

from sqlalchemy import Column, Integer, Text

from ..core.catalog import direction_for
from ..db.session import Base


class Order(Base):
    """One bulk movement of a single product/model into or out of a warehouse.

    ``serial_numbers`` holds one identifier per unit; its length always matches
    ``quantity`` once the order has been created.
    """

    __tablename__ = "orders"

    id = Column(Text, primary_key=True)
    order_type = Column(Text, nullable=False)
    sales_order = Column(Text, nullable=True, index=True)
    deal_id = Column(Text, nullable=True)
    nucleus_id = Column(Text, nullable=True)
    school_name = Column(Text, nullable=True)
    product = Column(Text, nullable=False, index=True)
    model = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    sd_card_size = Column(Text, nullable=True)
    profile_id = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    warehouse = Column(Text, nullable=False, index=True)
    serial_numbers_blob = Column("serial_numbers", Text, nullable=False, default="[]")
    # Set when the identifiers came from the generator rather than the caller.
    generated_serials = Column(Integer, nullable=False, default=0)
    order_date = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    deleted_at = Column(Text, nullable=True)
    is_deleted = Column(Integer, nullable=False, default=0, index=True)

    @property
    def serial_numbers(self) -> list[str]:
        raw = self.serial_numbers_blob
        if not raw:
            return []
        try:
            decoded = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return []
        if not isinstance(decoded, list):
            return []
        return [str(item) for item in decoded]

    @serial_numbers.setter
    def serial_numbers(self, value: list[str] | None) -> None:
        self.serial_numbers_blob = json.dumps(list(value or []))

    @property
    def unit_count(self) -> int:
        """Units actually recorded on the order, which aggregation trusts over ``quantity``."""

        return len(self.serial_numbers)

    @property
    def direction(self) -> str | None:
        return direction_for(self.order_type)


__all__ = ["Order"]
