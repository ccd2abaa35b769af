# collect every model so Alembic / Base.metadata sees them

from .order import (
    Order,
    OrderLine,
)

from .product import Product
from .carrier import CarrierCost
from .delivery_run import DeliveryCostRun

__all__ = [
    # orders
    "Order", "OrderLine",
    # catalog
    "Product",
    # delivery cost
    "CarrierCost", "DeliveryCostRun",
]
