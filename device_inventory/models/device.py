"""SQLAlchemy model for individual units expanded from an order."""

from __future__ import annotations

from sqlalchemy import Column, Integer, Text

from ..db.session import Base


class Device(Base):
    """One physical unit.

    ``order_id`` is a plain back-reference rather than a foreign key so device
    history survives for reporting even if the order row disappears.
    """

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    serial_number = Column(Text, nullable=False, unique=True, index=True)
    order_id = Column(Text, nullable=True, index=True)
    order_type = Column(Text, nullable=True)
    sales_order = Column(Text, nullable=True)
    deal_id = Column(Text, nullable=True)
    nucleus_id = Column(Text, nullable=True)
    school_name = Column(Text, nullable=True)
    product = Column(Text, nullable=False, index=True)
    model = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=True)
    sd_card_size = Column(Text, nullable=True)
    profile_id = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    warehouse = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="Available", index=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    deleted_at = Column(Text, nullable=True)
    is_deleted = Column(Integer, nullable=False, default=0, index=True)


__all__ = ["Device"]
