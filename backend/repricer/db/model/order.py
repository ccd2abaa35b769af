from __future__ import annotations
from decimal import Decimal
from datetime import datetime
from typing import Optional, List

from sqlalchemy import (
    String, Integer, Numeric, DateTime, ForeignKeyConstraint, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from repricer.db.base import Base



"""
  渠道订单表 (written by order ingestion, this service only reads it
  and stamps the delivery_* columns after a manifest match)
"""
class Order(Base):
    __tablename__ = "orders"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)   # tenant
    order_id:   Mapped[str] = mapped_column(String(64), primary_key=True)

    channel_order_no: Mapped[str]           = mapped_column(String(128), nullable=False)  # "65061", "12320364167549-REM" (suffix = split shipment)
    channel_name:     Mapped[Optional[str]] = mapped_column(String(64))
    order_date:       Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status:           Mapped[Optional[str]] = mapped_column(String(32))

    # —— delivery annotation (manifest import) ——
    delivery_carrier:     Mapped[Optional[str]] = mapped_column(String(32))     # canonical carrier id
    delivery_carrier_raw: Mapped[Optional[str]] = mapped_column(String(255))    # label as it came in the manifest
    delivery_parcels:     Mapped[Optional[int]] = mapped_column(Integer)        # informational only, never a multiplier
    delivery_imported_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List["OrderLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.line_no",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_orders_account_channel_order_no", "account_id", "channel_order_no"),
        Index("ix_orders_account_delivery_carrier", "account_id", "delivery_carrier"),
    )



# 订单行
class OrderLine(Base):
    __tablename__ = "order_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_id:   Mapped[str] = mapped_column(String(64), nullable=False)
    line_no:    Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    sku:      Mapped[Optional[str]] = mapped_column(String(255))
    quantity: Mapped[Optional[int]] = mapped_column(Integer, default=1)

    unit_price_incl_vat: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    unit_price_excl_vat: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    line_total_incl_vat: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))   # already includes quantity

    order: Mapped[Order] = relationship(back_populates="lines")

    __table_args__ = (
        ForeignKeyConstraint(
            ["account_id", "order_id"],
            ["orders.account_id", "orders.order_id"],
            ondelete="CASCADE",
        ),
        Index("ix_order_lines_account_order", "account_id", "order_id"),
    )
