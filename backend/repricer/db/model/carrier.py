from __future__ import annotations
from decimal import Decimal
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Numeric, Boolean, DateTime, text, func
from sqlalchemy.orm import Mapped, mapped_column
from repricer.db.base import Base



# 承运商运费配置表: one flat cost per shipment, parcels do not multiply it
class CarrierCost(Base):
    __tablename__ = "carrier_costs"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    carrier_id: Mapped[str] = mapped_column(String(32), primary_key=True)    # canonical id, e.g. 'homefleet', 'dpd'

    carrier_name:      Mapped[str]     = mapped_column(String(128), nullable=False)                  # display name
    cost_per_shipment: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)    # 0 = placeholder, operator has not set it yet
    is_active:         Mapped[bool]    = mapped_column(Boolean, nullable=False, server_default=text("true"), default=True)

    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())
