from __future__ import annotations
from typing import Optional, Dict, Any

from sqlalchemy import String, Integer, Text, DateTime, Enum, JSON, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from repricer.db.base import Base



# 运费分摊计算记录表: one row per recalculate / manifest import / fill run, for auditing and stuck-run sweeps
class DeliveryCostRun(Base):
    __tablename__ = "delivery_cost_runs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    kind: Mapped[str] = mapped_column(
        Enum("recalculate", "import", "fill_missing", name="delivery_cost_run_kind", create_constraint=True),
        nullable=False,
    )
    # pending/running/completed/failed
    status: Mapped[str] = mapped_column(
        Enum("pending", "running", "completed", "failed",
             name="delivery_cost_run_status", create_constraint=True),
        nullable=False, default="pending"
    )

    triggered_by:     Mapped[Optional[str]] = mapped_column(String(32))        # manual / schedule / api
    rows_in:          Mapped[int] = mapped_column(Integer, default=0)          # manifest rows (0 for recalculation)
    products_changed: Mapped[int] = mapped_column(Integer, default=0)
    message:          Mapped[Optional[str]] = mapped_column(Text)              # summary or failure text
    report:           Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON().with_variant(JSONB(), "postgresql"))
    finished_at:      Mapped[Optional[object]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
