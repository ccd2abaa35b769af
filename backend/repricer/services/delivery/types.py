# 运费分摊: records passed between the pipeline steps

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Carrier(str, Enum):
    """Canonical carriers. Free-text manifest labels are folded into one of these (see carrier_registry)."""
    HOMEFLEET = "homefleet"
    DPD = "dpd"
    DX = "dx"
    ARROWXL = "arrowxl"
    PARCELFORCE = "parcelforce"
    AK_WORTHINGTON = "ak_worthington"
    CONSOLIDATED = "consolidated"
    HOLD_DELIVERY = "hold_delivery"
    TODAY_DESPATCH = "today_despatch"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "Carrier":
        """Stored canonical id -> Carrier; anything unrecognised is UNKNOWN."""
        if isinstance(value, Carrier):
            return value
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class CostSource(str, Enum):
    DIRECT = "direct"          # per-unit cost from this SKU's own orders
    CATEGORY = "category"      # primary category average
    OVERALL = "overall"        # average over every category
    OVERRIDE = "override"      # suite / heavy item rule
    MANUAL = "manual"          # operator upload, never replaced by an estimate
    NONE = "none"

    @property
    def is_estimate(self) -> bool:
        return self in (CostSource.CATEGORY, CostSource.OVERALL)


@dataclass(frozen=True)
class OrderLineRecord:
    sku: Optional[str]
    quantity: Optional[int] = None
    unit_price_incl_vat: Optional[Decimal] = None
    unit_price_excl_vat: Optional[Decimal] = None
    line_total_incl_vat: Optional[Decimal] = None    # already includes quantity


@dataclass(frozen=True)
class OrderRecord:
    order_id: str
    channel_order_no: str
    order_date: Optional[datetime] = None
    delivery_carrier: Optional[Carrier] = None
    delivery_carrier_raw: Optional[str] = None
    delivery_parcels: Optional[int] = None
    lines: Tuple[OrderLineRecord, ...] = ()


@dataclass(frozen=True)
class DeliveryAnnotation:
    """What a manifest match writes back onto the order."""
    carrier: Carrier
    raw_carrier: str
    parcels: int


@dataclass(frozen=True)
class CarrierCostRecord:
    carrier_id: str
    carrier_name: str
    cost_per_shipment: Decimal = Decimal("0")
    is_active: bool = True
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class ProductRecord:
    sku: str
    title: Optional[str] = None
    category: Optional[str] = None
    weight: Optional[Decimal] = None
    delivery_cost: Optional[Decimal] = None
    delivery_cost_source: Optional[str] = None
    delivery_carrier_counts: Optional[Dict[str, int]] = field(default=None, compare=False)

    @property
    def primary_category(self) -> Optional[str]:
        """'Taps, Kitchen Taps' -> 'Taps'."""
        if not self.category:
            return None
        primary = self.category.split(",")[0].strip()
        return primary or None


@dataclass(frozen=True)
class ManifestRow:
    """One line of the warehouse delivery summary."""
    order_number: str
    parcels: int
    carrier: str

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "ManifestRow":
        # accepts both the upload shape (orderNumber) and snake_case
        number = raw.get("orderNumber", raw.get("order_number"))
        try:
            parcels = int(raw.get("parcels") or 0)
        except (TypeError, ValueError):
            parcels = 0
        return cls(
            order_number=str(number or "").strip(),
            parcels=max(parcels, 0),
            carrier=str(raw.get("carrier") or ""),
        )
