# DeliveryCostRepository on top of SQLAlchemy

from __future__ import annotations
import logging
from typing import List, Sequence

from sqlalchemy.orm import Session

from repricer.repository import carrier_repo, order_repo, product_repo
from repricer.services.delivery.types import (
    CarrierCostRecord,
    DeliveryAnnotation,
    OrderRecord,
    ProductRecord,
)


logger = logging.getLogger(__name__)



class SqlDeliveryCostRepository:
    """
    Reads return plain records (ORM rows never leak into the engine).
    Each write call commits its own short transaction, so one batch of products
    is one commit.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---- reads ----
    def get_all_orders(self, account_id: str) -> List[OrderRecord]:
        return [order_repo.to_record(o) for o in order_repo.list_orders(self.db, account_id)]

    def get_all_orders_with_delivery_data(self, account_id: str) -> List[OrderRecord]:
        rows = order_repo.list_orders(self.db, account_id, with_delivery_only=True)
        return [order_repo.to_record(o) for o in rows]

    def get_all_products(self, account_id: str) -> List[ProductRecord]:
        return [product_repo.to_record(p) for p in product_repo.list_products(self.db, account_id)]

    def get_all_carrier_costs(self, account_id: str) -> List[CarrierCostRecord]:
        return [carrier_repo.to_record(c) for c in carrier_repo.list_carriers(self.db, account_id)]

    # ---- writes ----
    def batch_put_products(self, account_id: str, products: Sequence[ProductRecord]) -> None:
        try:
            n = product_repo.update_delivery_costs(self.db, account_id, products)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if n != len(products):
            logger.warning("batch_put_products: acct=%s expected=%d updated=%d", account_id, len(products), n)

    def put_carrier_cost(self, account_id: str, carrier: CarrierCostRecord) -> None:
        try:
            carrier_repo.upsert_carrier(
                self.db,
                account_id,
                carrier.carrier_id,
                carrier_name=carrier.carrier_name,
                cost_per_shipment=carrier.cost_per_shipment,
                is_active=carrier.is_active,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def update_order_delivery(self, account_id: str, order_id: str, annotation: DeliveryAnnotation) -> None:
        try:
            found = order_repo.set_order_delivery(
                self.db,
                account_id,
                order_id,
                carrier=annotation.carrier.value,
                raw_carrier=annotation.raw_carrier,
                parcels=annotation.parcels,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if not found:
            logger.warning("update_order_delivery: order not found acct=%s order_id=%s", account_id, order_id)
