# 类目均值兜底: SKUs without their own order evidence borrow their category's average

from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from repricer.services.delivery.allocation import SkuAggregator, normalize_sku
from repricer.services.delivery.types import CostSource, ProductRecord
from repricer.utils.money import ZERO, round_cents


logger = logging.getLogger(__name__)


@dataclass
class CategoryAverage:
    category: str
    total: Decimal = ZERO      # sum of unrounded per-unit costs
    count: int = 0             # contributing SKUs

    @property
    def average(self) -> Optional[Decimal]:
        if self.count <= 0:
            return None
        return round_cents(self.total / Decimal(self.count))


@dataclass(frozen=True)
class Estimate:
    value: Optional[Decimal]
    source: CostSource
    detail: str = ""


"""
Gap rule: only products without a positive cost, or whose stored cost was itself an estimate,
get a fallback value. Manual and direct values stay put.
"""
def needs_estimate(product: ProductRecord) -> bool:
    current = product.delivery_cost
    if current is None or current <= 0:
        return True
    try:
        return CostSource(product.delivery_cost_source).is_estimate
    except ValueError:
        return False



class CategoryFallbackEstimator:

    def __init__(self, categories: Optional[Mapping[str, CategoryAverage]] = None):
        self._categories: Dict[str, CategoryAverage] = dict(categories or {})

    @classmethod
    def build(cls, aggregator: SkuAggregator, products_by_sku: Mapping[str, ProductRecord]) -> "CategoryFallbackEstimator":
        """
        products_by_sku is keyed by upper-cased SKU (normalize_sku).
        Only SKUs with direct evidence and a product with a category contribute.
        """
        cats: Dict[str, CategoryAverage] = {}
        for sku, stats in aggregator.items():
            if not stats.has_direct_evidence:
                continue
            product = products_by_sku.get(sku)
            category = product.primary_category if product is not None else None
            per_unit = stats.per_unit_cost
            if not category or per_unit is None:
                continue
            bucket = cats.get(category)
            if bucket is None:
                bucket = cats[category] = CategoryAverage(category=category)
            bucket.total += per_unit
            bucket.count += 1

        est = cls(cats)
        logger.info("category averages built: categories=%d overall_avg=%s", len(cats), est.overall_average)
        return est

    def __len__(self) -> int:
        return len(self._categories)

    def category_average(self, category: Optional[str]) -> Optional[Decimal]:
        if not category:
            return None
        bucket = self._categories.get(category)
        return bucket.average if bucket is not None else None

    @property
    def overall_average(self) -> Optional[Decimal]:
        total = sum((c.total for c in self._categories.values()), ZERO)
        count = sum(c.count for c in self._categories.values())
        if count <= 0:
            return None
        return round_cents(total / Decimal(count))

    def estimate(self, product: ProductRecord) -> Estimate:
        category = product.primary_category

        avg = self.category_average(category)
        if avg is not None and avg > 0:
            return Estimate(value=avg, source=CostSource.CATEGORY, detail=f"category: {category}")

        overall = self.overall_average
        if overall is not None and overall > 0:
            detail = "overall avg" if category else "overall avg (no category)"
            return Estimate(value=overall, source=CostSource.OVERALL, detail=detail)

        return Estimate(value=None, source=CostSource.NONE, detail="no evidence")

    def summary(self, limit: Optional[int] = 20) -> List[Dict[str, object]]:
        ranked = sorted(self._categories.values(), key=lambda c: (-c.count, c.category))
        if limit is not None:
            ranked = ranked[:limit]
        return [
            {"category": c.category, "avg_delivery_cost": c.average, "skus_with_order_data": c.count}
            for c in ranked
        ]


def index_products(products) -> Dict[str, ProductRecord]:
    """{normalize_sku(p.sku): p}; later duplicates win."""
    out: Dict[str, ProductRecord] = {}
    for p in products:
        key = normalize_sku(p.sku)
        if key:
            out[key] = p
    return out
