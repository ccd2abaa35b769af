# 承运商运费配置 DB 操作

from __future__ import annotations
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from repricer.db.model.carrier import CarrierCost
from repricer.services.delivery.errors import CarrierNotFoundError
from repricer.services.delivery.types import CarrierCostRecord
from repricer.utils.clock import now_utc
from repricer.utils.money import or_zero


def to_record(row: CarrierCost) -> CarrierCostRecord:
    return CarrierCostRecord(
        carrier_id=row.carrier_id,
        carrier_name=row.carrier_name,
        cost_per_shipment=or_zero(row.cost_per_shipment),
        is_active=bool(row.is_active),
        last_updated=row.last_updated,
    )


def list_carriers(db: Session, account_id: str) -> List[CarrierCost]:
    stmt = (
        select(CarrierCost)
        .where(CarrierCost.account_id == account_id)
        .order_by(CarrierCost.carrier_id)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def get_carrier(db: Session, account_id: str, carrier_id: str) -> Optional[CarrierCost]:
    return db.get(CarrierCost, (account_id, carrier_id))


def _insert_for(db: Session):
    # insert ... on conflict exists on both dialects we run on
    name = db.get_bind().dialect.name
    return sqlite_insert if name == "sqlite" else pg_insert


"""
upsert 一行承运商配置 (PK = account_id + carrier_id), commit 交给调用方
"""
def upsert_carrier(
    db: Session,
    account_id: str,
    carrier_id: str,
    *,
    carrier_name: str,
    cost_per_shipment: Decimal,
    is_active: bool = True,
) -> CarrierCost:
    insert = _insert_for(db)
    row = {
        "account_id": account_id,
        "carrier_id": carrier_id,
        "carrier_name": carrier_name,
        "cost_per_shipment": or_zero(cost_per_shipment),
        "is_active": is_active,
        "last_updated": now_utc(),
    }
    stmt = insert(CarrierCost).values(row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[CarrierCost.account_id, CarrierCost.carrier_id],
        set_={k: getattr(stmt.excluded, k) for k in row if k not in ("account_id", "carrier_id")},
    )
    db.execute(stmt)
    db.expire_all()
    return get_carrier(db, account_id, carrier_id)


def delete_carrier(db: Session, account_id: str, carrier_id: str) -> bool:
    res = db.execute(
        delete(CarrierCost).where(CarrierCost.account_id == account_id, CarrierCost.carrier_id == carrier_id)
    )
    return (res.rowcount or 0) > 0


def require_carrier(db: Session, account_id: str, carrier_id: str) -> CarrierCost:
    row = get_carrier(db, account_id, carrier_id)
    if row is None:
        raise CarrierNotFoundError(account_id, carrier_id)
    return row
