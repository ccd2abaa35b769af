# 产品运费写回: only real changes are written, in small sequential batches

from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional

from repricer.services.delivery.types import CostSource, ProductRecord
from repricer.utils.money import or_zero, round_cents, to_decimal


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductCostChange:
    sku: str
    old_cost: Optional[Decimal]
    new_cost: Optional[Decimal]
    source: CostSource
    detail: str = ""


@dataclass
class WriteSummary:
    updated_from_orders: int = 0
    filled_from_estimates: int = 0
    overridden: int = 0
    unchanged: int = 0
    no_source: int = 0
    products_written: int = 0
    batches_written: int = 0
    updated_samples: List[ProductCostChange] = field(default_factory=list)
    filled_samples: List[ProductCostChange] = field(default_factory=list)
    overridden_samples: List[ProductCostChange] = field(default_factory=list)
    no_source_samples: List[ProductCostChange] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.updated_from_orders + self.filled_from_estimates + self.overridden



class ProductCostWriter:
    """
    Collects the per-product outcome of one run and writes the changed products.

    stage() queues a product when the new value differs from the stored one by more
    than `tolerance`, or when the value holds but its source changed. A second run over
    the same data writes nothing.
    """

    def __init__(self, repository, tolerance: Decimal = Decimal("0.01"), batch_size: int = 25, sample_limit: int = 50):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.repository = repository
        self.tolerance = to_decimal(tolerance)
        self.batch_size = batch_size
        self.sample_limit = sample_limit
        self.summary = WriteSummary()
        self._queue: List[ProductRecord] = []

    def _sample(self, bucket: List[ProductCostChange], change: ProductCostChange) -> None:
        if len(bucket) < self.sample_limit:
            bucket.append(change)

    def stage(
        self,
        product: ProductRecord,
        new_value: Decimal,
        source: CostSource,
        detail: str = "",
        carrier_counts: Optional[Dict[str, int]] = None,
    ) -> bool:
        new_cost = round_cents(to_decimal(new_value))
        old_cost = product.delivery_cost
        if new_cost is None:
            self.summary.unchanged += 1
            return False
        # same value but a different source (e.g. estimate now backed by orders) still gets written
        same_source = old_cost is None or product.delivery_cost_source == source.value
        if abs(new_cost - or_zero(old_cost)) <= self.tolerance and same_source:
            self.summary.unchanged += 1
            return False

        updated = replace(
            product,
            delivery_cost=new_cost,
            delivery_cost_source=source.value,
            delivery_carrier_counts=carrier_counts if carrier_counts is not None else product.delivery_carrier_counts,
        )
        self._queue.append(updated)

        change = ProductCostChange(sku=product.sku, old_cost=old_cost, new_cost=new_cost, source=source, detail=detail)
        s = self.summary
        if source is CostSource.DIRECT:
            s.updated_from_orders += 1
            self._sample(s.updated_samples, change)
        elif source is CostSource.OVERRIDE:
            s.overridden += 1
            self._sample(s.overridden_samples, change)
        else:
            s.filled_from_estimates += 1
            self._sample(s.filled_samples, change)
        return True

    def keep(self, product: ProductRecord) -> None:
        self.summary.unchanged += 1

    def no_source(self, product: ProductRecord, detail: str = "no evidence") -> None:
        self.summary.no_source += 1
        self._sample(
            self.summary.no_source_samples,
            ProductCostChange(sku=product.sku, old_cost=product.delivery_cost, new_cost=None, source=CostSource.NONE, detail=detail),
        )

    @property
    def pending(self) -> int:
        return len(self._queue)

    def flush(self, account_id: str) -> WriteSummary:
        """
        Sequential batches of at most batch_size. A failing batch propagates; batches already
        written stay written and the next run recomputes the same values.
        """
        queue, self._queue = self._queue, []
        for start in range(0, len(queue), self.batch_size):
            chunk = queue[start:start + self.batch_size]
            self.repository.batch_put_products(account_id, chunk)
            self.summary.products_written += len(chunk)
            self.summary.batches_written += 1
        if queue:
            logger.info(
                "delivery cost write done: acct=%s products=%d batches=%d",
                account_id, self.summary.products_written, self.summary.batches_written,
            )
        return self.summary
