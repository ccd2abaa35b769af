from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from repricer.services.delivery.record_matcher import AmbiguousMatchPolicy


# 默认值 (和 Settings 保持一致)
DEFAULTS: Dict[str, Any] = {
    "override_cost": Decimal("45"),
    "heavy_weight_kg": Decimal("30"),
    "override_title_keyword": "suite",
    "change_tolerance": Decimal("0.01"),
    "write_batch_size": 25,
    "report_sample_limit": 50,
    "category_summary_limit": 20,
    "order_no_separator": "-",
    "ambiguous_match_policy": AmbiguousMatchPolicy.REJECT,
}


@dataclass(frozen=True)
class DeliveryCostConfig:
    override_cost: Decimal = DEFAULTS["override_cost"]
    heavy_weight_kg: Decimal = DEFAULTS["heavy_weight_kg"]
    override_title_keyword: str = DEFAULTS["override_title_keyword"]
    change_tolerance: Decimal = DEFAULTS["change_tolerance"]
    write_batch_size: int = DEFAULTS["write_batch_size"]
    report_sample_limit: int = DEFAULTS["report_sample_limit"]
    category_summary_limit: int = DEFAULTS["category_summary_limit"]
    order_no_separator: str = DEFAULTS["order_no_separator"]
    ambiguous_match_policy: AmbiguousMatchPolicy = DEFAULTS["ambiguous_match_policy"]

    @classmethod
    def from_settings(cls, s=None) -> "DeliveryCostConfig":
        if s is None:
            from repricer.core.config import settings as s
        return cls(
            override_cost=Decimal(str(s.DELIVERY_OVERRIDE_COST)),
            heavy_weight_kg=Decimal(str(s.DELIVERY_HEAVY_WEIGHT_KG)),
            override_title_keyword=s.DELIVERY_OVERRIDE_TITLE_KEYWORD,
            change_tolerance=Decimal(str(s.DELIVERY_CHANGE_TOLERANCE)),
            write_batch_size=int(s.DELIVERY_WRITE_BATCH_SIZE),
            report_sample_limit=int(s.DELIVERY_REPORT_SAMPLE_LIMIT),
            category_summary_limit=int(s.DELIVERY_CATEGORY_SUMMARY_LIMIT),
            order_no_separator=s.DELIVERY_ORDER_NO_SEPARATOR,
            ambiguous_match_policy=AmbiguousMatchPolicy(s.DELIVERY_AMBIGUOUS_MATCH_POLICY),
        )


"""
统一入口: settings -> DeliveryCostConfig, overrides (e.g. from a task kwarg) applied on top
"""
def load_delivery_config(**overrides: Any) -> DeliveryCostConfig:
    cfg = DeliveryCostConfig.from_settings()
    if not overrides:
        return cfg
    unknown = set(overrides) - set(DEFAULTS)
    if unknown:
        raise ValueError(f"unknown delivery config keys: {sorted(unknown)}")
    data = {k: getattr(cfg, k) for k in DEFAULTS}
    data.update({k: v for k, v in overrides.items() if v is not None})
    if "ambiguous_match_policy" in overrides and overrides["ambiguous_match_policy"] is not None:
        data["ambiguous_match_policy"] = AmbiguousMatchPolicy(overrides["ambiguous_match_policy"])
    return DeliveryCostConfig(**data)
