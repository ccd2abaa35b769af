# 订单运费按行价值分摊 + 按 SKU 汇总

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from repricer.services.delivery.carrier_registry import CarrierRegistry, EXCLUDED_CARRIERS, is_excluded_carrier
from repricer.services.delivery.types import Carrier, OrderLineRecord, OrderRecord
from repricer.utils.money import ZERO, or_zero, round_cents


# --------- 行价值 ----------
def line_quantity(line: OrderLineRecord) -> int:
    # missing or zero quantity counts as one unit
    return int(line.quantity) if line.quantity else 1


def line_value(line: OrderLineRecord) -> Decimal:
    """line_total_incl_vat when set and non-zero, otherwise unit price (incl VAT) x quantity."""
    total = or_zero(line.line_total_incl_vat)
    if total != 0:
        return total
    return or_zero(line.unit_price_incl_vat) * line_quantity(line)


def normalize_sku(sku: Optional[str]) -> Optional[str]:
    if sku is None:
        return None
    key = str(sku).strip().upper()
    return key or None


class SkipReason(str, Enum):
    NO_LINES = "no_lines"
    NO_CARRIER = "no_carrier"    # order was never annotated with a carrier
    EXCLUDED_CARRIER = "excluded_carrier"
    NO_CARRIER_COST = "no_carrier_cost"


@dataclass(frozen=True)
class LineAllocation:
    line: OrderLineRecord
    line_value: Decimal
    value_share: Decimal
    allocated_cost: Decimal


@dataclass(frozen=True)
class OrderAllocation:
    order: OrderRecord
    carrier: Carrier
    order_cost: Optional[Decimal] = None
    lines: Tuple[LineAllocation, ...] = ()
    skip_reason: Optional[SkipReason] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None



class LineValueAllocator:
    """Spreads one order's carrier charge over its lines by line value."""

    def __init__(self, registry: CarrierRegistry):
        self.registry = registry

    @staticmethod
    def allocate(order: OrderRecord, order_cost: Decimal) -> List[LineAllocation]:
        lines = list(order.lines)
        if not lines:
            return []

        values = [line_value(ln) for ln in lines]
        total = sum(values, ZERO)
        cost = or_zero(order_cost)

        n = Decimal(len(lines))
        out: List[LineAllocation] = []
        for ln, val in zip(lines, values):
            if total > 0:
                share, allocated = val / total, cost * val / total
            else:
                # nothing priced: split evenly
                share, allocated = Decimal(1) / n, cost / n
            out.append(LineAllocation(line=ln, line_value=val, value_share=share, allocated_cost=allocated))
        return out

    def allocate_order(self, order: OrderRecord) -> OrderAllocation:
        carrier = Carrier.parse(order.delivery_carrier)

        if order.delivery_carrier is None:
            return OrderAllocation(order=order, carrier=carrier, skip_reason=SkipReason.NO_CARRIER)
        if carrier in EXCLUDED_CARRIERS:
            return OrderAllocation(order=order, carrier=carrier, skip_reason=SkipReason.EXCLUDED_CARRIER)
        if is_excluded_carrier(order.delivery_carrier_raw or carrier.value):
            return OrderAllocation(order=order, carrier=carrier, skip_reason=SkipReason.EXCLUDED_CARRIER)

        if not order.lines:
            return OrderAllocation(order=order, carrier=carrier, skip_reason=SkipReason.NO_LINES)

        cost = self.registry.cost_of(carrier)
        if cost is None:
            return OrderAllocation(order=order, carrier=carrier, skip_reason=SkipReason.NO_CARRIER_COST)

        return OrderAllocation(
            order=order,
            carrier=carrier,
            order_cost=cost,
            lines=tuple(self.allocate(order, cost)),
        )



# --------- SKU 汇总 ----------
@dataclass
class SkuDeliveryStats:
    total_delivery_cost: Decimal = ZERO
    total_quantity: int = 0
    order_count: int = 0
    carrier_counts: Dict[str, int] = field(default_factory=dict)

    def add(self, carrier: Carrier | str, allocated_cost: Decimal, quantity: int) -> None:
        key = Carrier.parse(carrier).value
        self.total_delivery_cost += allocated_cost
        self.total_quantity += quantity
        self.order_count += 1
        self.carrier_counts[key] = self.carrier_counts.get(key, 0) + 1

    def merge(self, other: "SkuDeliveryStats") -> "SkuDeliveryStats":
        counts = dict(self.carrier_counts)
        for k, v in other.carrier_counts.items():
            counts[k] = counts.get(k, 0) + v
        return SkuDeliveryStats(
            total_delivery_cost=self.total_delivery_cost + other.total_delivery_cost,
            total_quantity=self.total_quantity + other.total_quantity,
            order_count=self.order_count + other.order_count,
            carrier_counts=counts,
        )

    @property
    def has_direct_evidence(self) -> bool:
        return self.total_delivery_cost > 0

    @property
    def per_unit_cost(self) -> Optional[Decimal]:
        """Unrounded; the category averages are built from this."""
        if self.total_quantity <= 0:
            return None
        return self.total_delivery_cost / Decimal(self.total_quantity)

    @property
    def delivery_cost(self) -> Optional[Decimal]:
        return round_cents(self.per_unit_cost)

    @property
    def predominant_carrier(self) -> Optional[str]:
        if not self.carrier_counts:
            return None
        # ties go to the alphabetically first id so merge order never matters
        return min(self.carrier_counts.items(), key=lambda kv: (-kv[1], kv[0]))[0]



class SkuAggregator:
    """Running SkuDeliveryStats per upper-cased SKU. Lines with a blank SKU are ignored."""

    def __init__(self):
        self._stats: Dict[str, SkuDeliveryStats] = {}

    def add(self, allocation: OrderAllocation) -> None:
        if allocation.skipped:
            return
        for la in allocation.lines:
            sku = normalize_sku(la.line.sku)
            if sku is None:
                continue
            stats = self._stats.get(sku)
            if stats is None:
                stats = self._stats[sku] = SkuDeliveryStats()
            stats.add(allocation.carrier, la.allocated_cost, line_quantity(la.line))

    def merge(self, other: "SkuAggregator") -> "SkuAggregator":
        out = SkuAggregator()
        for sku in set(self._stats) | set(other._stats):
            a, b = self._stats.get(sku), other._stats.get(sku)
            if a is None:
                out._stats[sku] = b.merge(SkuDeliveryStats())
            elif b is None:
                out._stats[sku] = a.merge(SkuDeliveryStats())
            else:
                out._stats[sku] = a.merge(b)
        return out

    def get(self, sku: Optional[str]) -> Optional[SkuDeliveryStats]:
        key = normalize_sku(sku)
        return self._stats.get(key) if key else None

    def items(self) -> Iterator[Tuple[str, SkuDeliveryStats]]:
        return iter(self._stats.items())

    def __contains__(self, sku: object) -> bool:
        key = normalize_sku(sku) if isinstance(sku, str) else None
        return key is not None and key in self._stats

    def __len__(self) -> int:
        return len(self._stats)

    @property
    def with_evidence(self) -> int:
        return sum(1 for s in self._stats.values() if s.has_direct_evidence)
