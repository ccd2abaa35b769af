from __future__ import annotations
from typing import List, Protocol, Sequence

from repricer.services.delivery.types import (
    CarrierCostRecord,
    DeliveryAnnotation,
    OrderRecord,
    ProductRecord,
)


class DeliveryCostRepository(Protocol):
    """
    What the engine needs from storage, scoped by tenant.
    Implemented by repository.delivery_repo.SqlDeliveryCostRepository and by the in-memory fake in tests.
    """

    def get_all_orders(self, account_id: str) -> List[OrderRecord]: ...

    def get_all_orders_with_delivery_data(self, account_id: str) -> List[OrderRecord]: ...

    def get_all_products(self, account_id: str) -> List[ProductRecord]: ...

    def get_all_carrier_costs(self, account_id: str) -> List[CarrierCostRecord]: ...

    # only the delivery_* fields of each product are persisted
    def batch_put_products(self, account_id: str, products: Sequence[ProductRecord]) -> None: ...

    def put_carrier_cost(self, account_id: str, carrier: CarrierCostRecord) -> None: ...

    def update_order_delivery(self, account_id: str, order_id: str, annotation: DeliveryAnnotation) -> None: ...
