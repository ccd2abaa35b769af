from __future__ import annotations

import os

# unit tests never need a live Postgres; integration tests set DATABASE_URL themselves
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from repricer.db.base import Base
import repricer.db.model  # noqa: F401
from repricer.services.delivery.delivery_config import DeliveryCostConfig
from repricer.services.delivery.types import (
    Carrier,
    CarrierCostRecord,
    DeliveryAnnotation,
    OrderLineRecord,
    OrderRecord,
    ProductRecord,
)


ACCOUNT = "acct-1"


# ---------- builders ----------
def make_line(sku: Optional[str], quantity: Optional[int] = 1, line_total=None, unit_price=None) -> OrderLineRecord:
    return OrderLineRecord(
        sku=sku,
        quantity=quantity,
        unit_price_incl_vat=Decimal(str(unit_price)) if unit_price is not None else None,
        line_total_incl_vat=Decimal(str(line_total)) if line_total is not None else None,
    )


def make_order(
    order_id: str,
    channel_order_no: Optional[str] = None,
    carrier: Optional[Carrier] = None,
    raw: Optional[str] = None,
    lines: Sequence[OrderLineRecord] = (),
    order_date: Optional[datetime] = None,
) -> OrderRecord:
    return OrderRecord(
        order_id=order_id,
        channel_order_no=channel_order_no or order_id,
        order_date=order_date,
        delivery_carrier=carrier,
        delivery_carrier_raw=raw if raw is not None else (carrier.value if carrier else None),
        delivery_parcels=1 if carrier else None,
        lines=tuple(lines),
    )


def make_product(sku: str, title: str = "", category: Optional[str] = None, weight=None,
                 cost=None, source: Optional[str] = None) -> ProductRecord:
    return ProductRecord(
        sku=sku,
        title=title,
        category=category,
        weight=Decimal(str(weight)) if weight is not None else None,
        delivery_cost=Decimal(str(cost)) if cost is not None else None,
        delivery_cost_source=source,
    )


def carrier_cost(carrier: Carrier, cost, active: bool = True) -> CarrierCostRecord:
    return CarrierCostRecord(
        carrier_id=carrier.value,
        carrier_name=carrier.value,
        cost_per_shipment=Decimal(str(cost)),
        is_active=active,
        last_updated=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )



class FakeDeliveryRepository:
    """In-memory DeliveryCostRepository; records every write so tests can assert on them."""

    def __init__(self):
        self.orders: Dict[str, Dict[str, OrderRecord]] = {}
        self.products: Dict[str, Dict[str, ProductRecord]] = {}
        self.carriers: Dict[str, Dict[str, CarrierCostRecord]] = {}
        self.batches: List[List[str]] = []
        self.carrier_puts: List[CarrierCostRecord] = []
        self.annotations: List[tuple] = []
        self.fail_on_batch: Optional[int] = None

    # ---- seeding ----
    def add_orders(self, *orders: OrderRecord, account_id: str = ACCOUNT) -> None:
        bucket = self.orders.setdefault(account_id, {})
        for o in orders:
            bucket[o.order_id] = o

    def add_products(self, *products: ProductRecord, account_id: str = ACCOUNT) -> None:
        bucket = self.products.setdefault(account_id, {})
        for p in products:
            bucket[p.sku] = p

    def add_carriers(self, *rows: CarrierCostRecord, account_id: str = ACCOUNT) -> None:
        bucket = self.carriers.setdefault(account_id, {})
        for r in rows:
            bucket[r.carrier_id] = r

    def product(self, sku: str, account_id: str = ACCOUNT) -> ProductRecord:
        return self.products[account_id][sku]

    # ---- port ----
    def get_all_orders(self, account_id):
        return list(self.orders.get(account_id, {}).values())

    def get_all_orders_with_delivery_data(self, account_id):
        return [
            o for o in self.get_all_orders(account_id)
            if o.delivery_carrier is not None and o.delivery_carrier is not Carrier.UNKNOWN
        ]

    def get_all_products(self, account_id):
        return list(self.products.get(account_id, {}).values())

    def get_all_carrier_costs(self, account_id):
        return list(self.carriers.get(account_id, {}).values())

    def batch_put_products(self, account_id, products):
        if self.fail_on_batch is not None and len(self.batches) == self.fail_on_batch:
            raise RuntimeError("simulated write failure")
        self.batches.append([p.sku for p in products])
        bucket = self.products.setdefault(account_id, {})
        for p in products:
            if p.sku in bucket:
                bucket[p.sku] = replace(
                    bucket[p.sku],
                    delivery_cost=p.delivery_cost,
                    delivery_cost_source=p.delivery_cost_source,
                    delivery_carrier_counts=p.delivery_carrier_counts,
                )

    def put_carrier_cost(self, account_id, carrier):
        self.carrier_puts.append(carrier)
        self.carriers.setdefault(account_id, {})[carrier.carrier_id] = carrier

    def update_order_delivery(self, account_id, order_id, annotation: DeliveryAnnotation):
        self.annotations.append((order_id, annotation))
        bucket = self.orders.setdefault(account_id, {})
        if order_id in bucket:
            bucket[order_id] = replace(
                bucket[order_id],
                delivery_carrier=annotation.carrier,
                delivery_carrier_raw=annotation.raw_carrier,
                delivery_parcels=annotation.parcels,
            )


@pytest.fixture
def repo() -> FakeDeliveryRepository:
    return FakeDeliveryRepository()


@pytest.fixture
def config() -> DeliveryCostConfig:
    return DeliveryCostConfig()


# ---------- sqlite ----------
@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=Session, future=True)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
