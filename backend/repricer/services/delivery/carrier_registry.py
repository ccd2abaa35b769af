# 承运商归一化 + 运费配置查询

from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from repricer.services.delivery.types import Carrier, CarrierCostRecord
from repricer.utils.clock import now_utc
from repricer.utils.money import to_decimal


logger = logging.getLogger(__name__)


# first hit wins, checked against the lowercased/trimmed label
_LABEL_RULES: Tuple[Tuple[str, Carrier], ...] = (
    ("dpd", Carrier.DPD),
    ("dx", Carrier.DX),
    ("arrow", Carrier.ARROWXL),
    ("parcelforce", Carrier.PARCELFORCE),
    ("worthington", Carrier.AK_WORTHINGTON),
    ("consolidated", Carrier.CONSOLIDATED),
    ("hold delivery", Carrier.HOLD_DELIVERY),
    ("hold_delivery", Carrier.HOLD_DELIVERY),
    ("today despatch", Carrier.TODAY_DESPATCH),
    ("today_despatch", Carrier.TODAY_DESPATCH),
)

# labels that mean "not shipped yet" and must never be billed
_EXCLUDED_PATTERNS: Tuple[str, ...] = (
    "hold delivery",
    "hold_delivery",
    "consolidated",
    "today despatch",
    "today_despatch",
)

EXCLUDED_CARRIERS = frozenset({Carrier.CONSOLIDATED, Carrier.HOLD_DELIVERY, Carrier.TODAY_DESPATCH})

DISPLAY_NAMES: Dict[Carrier, str] = {
    Carrier.HOMEFLEET: "HomeFleet",
    Carrier.DPD: "DPD Logistics",
    Carrier.DX: "DX",
    Carrier.ARROWXL: "ArrowXL",
    Carrier.PARCELFORCE: "Parcelforce",
    Carrier.AK_WORTHINGTON: "AK Worthington",
    Carrier.CONSOLIDATED: "Consolidated Delivery",
    Carrier.HOLD_DELIVERY: "Hold Delivery",
    Carrier.TODAY_DESPATCH: "Today Despatch",
    Carrier.UNKNOWN: "Unknown",
}


"""
归一化: "HomeFleet - Route 62" -> homefleet, " DPD Next Day " -> dpd.
Labels outside the closed set map to UNKNOWN instead of inventing a new carrier.
"""
def normalize_carrier(raw_label: Optional[str]) -> Carrier:
    if not raw_label or not raw_label.strip():
        return Carrier.UNKNOWN

    lower = raw_label.strip().lower()

    # HomeFleet labels carry the route number
    if lower.startswith("homefleet"):
        return Carrier.HOMEFLEET

    for needle, carrier in _LABEL_RULES:
        if needle in lower:
            return carrier
    return Carrier.UNKNOWN


def is_excluded_carrier(raw_label: Optional[str]) -> bool:
    if not raw_label or not raw_label.strip():
        return True
    lower = raw_label.strip().lower()
    return any(p in lower for p in _EXCLUDED_PATTERNS)


def carrier_display_name(carrier: Carrier | str) -> str:
    parsed = Carrier.parse(carrier)
    if parsed is Carrier.UNKNOWN and str(carrier) != Carrier.UNKNOWN.value:
        return str(carrier)
    return DISPLAY_NAMES[parsed]



class CarrierRegistry:
    """
    Per-tenant view of carrier_costs.

    cost_of() answers "is there billing evidence for this carrier": a missing,
    inactive or zero-cost row is reported as None so callers skip the order
    instead of spreading a fake zero over its SKUs.
    """

    normalize = staticmethod(normalize_carrier)
    is_excluded = staticmethod(is_excluded_carrier)
    display_name = staticmethod(carrier_display_name)

    def __init__(self, rows: Iterable[CarrierCostRecord] = ()):
        self._rows: Dict[Carrier, CarrierCostRecord] = {}
        for row in rows:
            carrier = Carrier.parse(row.carrier_id)
            if carrier is Carrier.UNKNOWN:
                logger.warning("ignoring carrier cost row with unrecognised carrier_id=%r", row.carrier_id)
                continue
            self._rows[carrier] = row

    def __contains__(self, carrier: object) -> bool:
        return Carrier.parse(carrier) in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def row(self, carrier: Carrier | str) -> Optional[CarrierCostRecord]:
        return self._rows.get(Carrier.parse(carrier))

    def cost_of(self, carrier: Carrier | str) -> Optional[Decimal]:
        parsed = Carrier.parse(carrier)
        if parsed is Carrier.UNKNOWN:
            return None
        row = self._rows.get(parsed)
        if row is None or not row.is_active:
            return None
        cost = to_decimal(row.cost_per_shipment)
        if cost is None or cost <= 0:
            return None
        return cost

    def placeholders_for(
        self,
        found: Iterable[Carrier],
        now: Optional[datetime] = None,
    ) -> List[CarrierCostRecord]:
        """
        Zero-cost rows for carriers seen in an import that have no configuration yet.
        They are registered here as well, so later cost_of() calls still see "no cost".
        """
        stamp = now or now_utc()
        created: List[CarrierCostRecord] = []
        for carrier in sorted(set(found), key=lambda c: c.value):
            if carrier is Carrier.UNKNOWN or carrier in self._rows:
                continue
            row = CarrierCostRecord(
                carrier_id=carrier.value,
                carrier_name=carrier_display_name(carrier),
                cost_per_shipment=Decimal("0"),
                is_active=True,
                last_updated=stamp,
            )
            self._rows[carrier] = row
            created.append(row)
        return created

    def missing_costs(self, found: Iterable[Carrier]) -> List[Carrier]:
        return sorted(
            (c for c in set(found) if c is not Carrier.UNKNOWN and self.cost_of(c) is None),
            key=lambda c: c.value,
        )
