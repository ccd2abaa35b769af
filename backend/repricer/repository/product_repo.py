# product database repository (delivery cost columns only)

from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from repricer.db.model.product import Product
from repricer.services.delivery.types import ProductRecord
from repricer.utils.clock import now_utc
from repricer.utils.money import round_cents, to_decimal


'''
  delivery attribution only owns these columns; title/category/weight belong to the catalog sync
'''
DELIVERY_FIELDS = [
    "delivery_cost",
    "delivery_cost_source",
    "delivery_carrier_counts",
]


def to_record(p: Product) -> ProductRecord:
    return ProductRecord(
        sku=p.sku,
        title=p.title,
        category=p.category,
        weight=to_decimal(p.weight),
        delivery_cost=to_decimal(p.delivery_cost),
        delivery_cost_source=p.delivery_cost_source,
        delivery_carrier_counts=dict(p.delivery_carrier_counts) if p.delivery_carrier_counts else None,
    )


def list_products(db: Session, account_id: str) -> List[Product]:
    # populate_existing: a run in the same session must see the previous batch writes
    stmt = (
        select(Product)
        .where(Product.account_id == account_id)
        .order_by(Product.sku)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def get_product(db: Session, account_id: str, sku: str) -> Optional[Product]:
    return db.get(Product, (account_id, sku))


"""
批量写回运费字段:
    - 只更新 DELIVERY_FIELDS + delivery_cost_updated_at
    - products that do not exist are skipped (never inserted from here)
    返回实际更新的行数
"""
def update_delivery_costs(
    db: Session,
    account_id: str,
    records: Sequence[ProductRecord],
    *,
    updated_at: Optional[datetime] = None,
) -> int:
    if not records:
        return 0

    stamp = updated_at or now_utc()
    updated = 0
    for rec in records:
        values = {
            "delivery_cost": round_cents(to_decimal(rec.delivery_cost)),
            "delivery_cost_source": rec.delivery_cost_source,
            "delivery_carrier_counts": rec.delivery_carrier_counts,
            "delivery_cost_updated_at": stamp,
        }
        res = db.execute(
            update(Product)
            .where(Product.account_id == account_id, Product.sku == rec.sku)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        updated += res.rowcount or 0
    return updated
