from __future__ import annotations
from decimal import Decimal
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy import String, Numeric, DateTime, JSON, Index, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from repricer.db.base import Base


# jsonb on postgres, plain JSON elsewhere (sqlite in tests)
JSONVariant = JSON().with_variant(JSONB(), "postgresql")



"""
  商品表 (catalog sync owns every column except the delivery_* ones)
"""
class Product(Base):
    __tablename__ = "products"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sku:        Mapped[str] = mapped_column(String(255), primary_key=True)

    title:    Mapped[Optional[str]]     = mapped_column(String(512))
    brand:    Mapped[Optional[str]]     = mapped_column(String(255))
    category: Mapped[Optional[str]]     = mapped_column(String(512))       # "Taps,Kitchen Taps" -> primary category "Taps"
    weight:   Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))    # kg

    # —— delivery cost attribution output ——
    delivery_cost:            Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))   # per unit
    delivery_cost_source:     Mapped[Optional[str]]     = mapped_column(String(32))       # direct | category | overall | override | manual
    delivery_carrier_counts:  Mapped[Optional[Dict[str, int]]] = mapped_column(JSONVariant)   # {"dpd": 12, "homefleet": 3}
    delivery_cost_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_products_account_category", "account_id", "category"),
    )
