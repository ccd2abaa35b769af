# 大件/套装 运费保底规则

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Tuple

from repricer.services.delivery.types import ProductRecord
from repricer.utils.money import or_zero, round_cents, to_decimal


class OverrideRule(Protocol):
    def reason(self, product: ProductRecord) -> Optional[str]:
        """Short text when the rule fires for this product, else None."""
        ...


@dataclass(frozen=True)
class SuiteTitleRule:
    keyword: str = "suite"

    def reason(self, product: ProductRecord) -> Optional[str]:
        if not product.title or not self.keyword:
            return None
        if self.keyword.lower() in product.title.lower():
            return f"{self.keyword.lower()} in title"
        return None


def _fmt_kg(weight: Decimal) -> str:
    # 35.000 -> "35", 30.5 -> "30.5"
    return format(weight.normalize(), "f")


@dataclass(frozen=True)
class HeavyItemRule:
    threshold_kg: Decimal = Decimal("30")

    def reason(self, product: ProductRecord) -> Optional[str]:
        weight = to_decimal(product.weight)
        if weight is None or weight <= Decimal(str(self.threshold_kg)):
            return None
        return f"heavy {_fmt_kg(weight)}kg"


@dataclass(frozen=True)
class OverrideDecision:
    value: Decimal
    raised: bool
    reasons: Tuple[str, ...]
    previous: Decimal

    @property
    def detail(self) -> str:
        text = ", ".join(self.reasons)
        if self.raised:
            text += f" (was £{self.previous:.2f})"
        return text



class OverrideRuleEngine:
    """
    Minimum per-unit cost for items a normal parcel rate undercharges.
    Rules only ever raise a value: anything already at or above the override amount is kept.
    """

    def __init__(self, rules: Iterable[OverrideRule], override_cost: Decimal):
        self.rules: List[OverrideRule] = list(rules)
        self.override_cost = round_cents(to_decimal(override_cost))

    @classmethod
    def from_config(cls, cfg) -> "OverrideRuleEngine":
        rules: List[OverrideRule] = [
            SuiteTitleRule(keyword=cfg.override_title_keyword),
            HeavyItemRule(threshold_kg=cfg.heavy_weight_kg),
        ]
        return cls(rules, cfg.override_cost)

    def evaluate(self, product: ProductRecord, current_value: Optional[Decimal]) -> Optional[OverrideDecision]:
        reasons = tuple(r for r in (rule.reason(product) for rule in self.rules) if r)
        if not reasons:
            return None

        current = or_zero(current_value)
        if current < self.override_cost:
            return OverrideDecision(value=self.override_cost, raised=True, reasons=reasons, previous=current)
        return OverrideDecision(value=current, raised=False, reasons=reasons, previous=current)
