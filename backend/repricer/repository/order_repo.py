# 订单 (orders / order_lines) 相关的 DB 操作

from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from repricer.db.model.order import Order, OrderLine
from repricer.services.delivery.types import Carrier, OrderLineRecord, OrderRecord
from repricer.utils.clock import now_utc
from repricer.utils.money import to_decimal


def _line_to_record(line: OrderLine) -> OrderLineRecord:
    return OrderLineRecord(
        sku=line.sku,
        quantity=line.quantity,
        unit_price_incl_vat=to_decimal(line.unit_price_incl_vat),
        unit_price_excl_vat=to_decimal(line.unit_price_excl_vat),
        line_total_incl_vat=to_decimal(line.line_total_incl_vat),
    )


'''
ORM -> OrderRecord. delivery_carrier is parsed into the closed Carrier enum here,
so the engine never sees free text in that field.
'''
def to_record(order: Order) -> OrderRecord:
    carrier = Carrier.parse(order.delivery_carrier) if order.delivery_carrier else None
    return OrderRecord(
        order_id=order.order_id,
        channel_order_no=order.channel_order_no,
        order_date=order.order_date,
        delivery_carrier=carrier,
        delivery_carrier_raw=order.delivery_carrier_raw,
        delivery_parcels=order.delivery_parcels,
        lines=tuple(_line_to_record(ln) for ln in order.lines),
    )


def list_orders(db: Session, account_id: str, *, with_delivery_only: bool = False) -> List[Order]:
    stmt = (
        select(Order)
        .where(Order.account_id == account_id)
        .options(selectinload(Order.lines))
        .order_by(Order.order_date, Order.order_id)
        .execution_options(populate_existing=True)
    )
    if with_delivery_only:
        # 'unknown' = manifest label we could not map, no cost can be looked up for it
        stmt = stmt.where(
            Order.delivery_carrier.is_not(None),
            Order.delivery_carrier != Carrier.UNKNOWN.value,
        )
    return list(db.execute(stmt).scalars().all())


def get_order(db: Session, account_id: str, order_id: str) -> Optional[Order]:
    return db.get(Order, (account_id, order_id))


"""
写回发货信息 (idempotent overwrite). Returns False when the order does not exist.
Commit is left to the caller.
"""
def set_order_delivery(
    db: Session,
    account_id: str,
    order_id: str,
    *,
    carrier: str,
    raw_carrier: Optional[str],
    parcels: Optional[int],
    imported_at: Optional[datetime] = None,
) -> bool:
    order = get_order(db, account_id, order_id)
    if order is None:
        return False
    order.delivery_carrier = carrier
    order.delivery_carrier_raw = raw_carrier
    order.delivery_parcels = parcels
    order.delivery_imported_at = imported_at or now_utc()
    return True
