# 发货记录匹配: manifest order number -> stored order

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from repricer.services.delivery.types import ManifestRow, OrderRecord


class MatchStatus(str, Enum):
    EXACT = "exact"
    BASE = "base"
    AMBIGUOUS = "ambiguous"
    UNMATCHED = "unmatched"


class AmbiguousMatchPolicy(str, Enum):
    REJECT = "reject"        # count + sample, leave the orders alone
    EARLIEST = "earliest"    # earliest order_date, then channel_order_no, then order_id


@dataclass(frozen=True)
class MatchResult:
    order_number: str
    status: MatchStatus
    candidates: Tuple[OrderRecord, ...] = field(default=())

    @property
    def matched(self) -> bool:
        return self.status in (MatchStatus.EXACT, MatchStatus.BASE)


_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def _order_date_key(order: OrderRecord) -> datetime:
    # missing dates sort last; naive datetimes are read as UTC
    if order.order_date is None:
        return _FAR_FUTURE
    if order.order_date.tzinfo is None:
        return order.order_date.replace(tzinfo=timezone.utc)
    return order.order_date


def _earliest(candidates: Iterable[OrderRecord]) -> OrderRecord:
    return min(candidates, key=lambda o: (_order_date_key(o), o.channel_order_no, o.order_id))



class DeliveryRecordMatcher:
    """
    Matches warehouse manifest rows to the tenant's orders.

    The channel sometimes splits one marketplace order into "<number>-A", "<number>-B"
    or "<number>-REM", while the warehouse quotes either the split number or the bare
    marketplace number. Lookup order:
        1) exact channel_order_no;
        2) base number (text before the first separator, or the whole manifest number
           when it has none) against orders whose channel number carries a suffix.
    Several candidates at either step make the row ambiguous; what happens next is
    decided by the policy.
    """

    def __init__(
        self,
        orders: Iterable[OrderRecord],
        separator: str = "-",
        policy: AmbiguousMatchPolicy = AmbiguousMatchPolicy.REJECT,
    ):
        if not separator:
            raise ValueError("separator must be a non-empty string")
        self.separator = separator
        self.policy = AmbiguousMatchPolicy(policy)
        self._exact: Dict[str, List[OrderRecord]] = {}
        self._base: Dict[str, List[OrderRecord]] = {}

        for order in orders:
            number = (order.channel_order_no or "").strip()
            if not number:
                continue
            self._exact.setdefault(number, []).append(order)
            if separator in number:
                base = number.split(separator, 1)[0]
                if base:
                    self._base.setdefault(base, []).append(order)

    def __len__(self) -> int:
        return sum(len(v) for v in self._exact.values())

    def base_number(self, order_number: str) -> str:
        number = (order_number or "").strip()
        if self.separator in number:
            return number.split(self.separator, 1)[0]
        return number

    def match(self, row: ManifestRow | str) -> MatchResult:
        number = (row.order_number if isinstance(row, ManifestRow) else str(row or "")).strip()
        if not number:
            return MatchResult(order_number=number, status=MatchStatus.UNMATCHED)

        # 1) exact
        exact = self._exact.get(number)
        if exact:
            status = MatchStatus.EXACT if len(exact) == 1 else MatchStatus.AMBIGUOUS
            return MatchResult(order_number=number, status=status, candidates=tuple(exact))

        # 2) base number
        base = self.base_number(number)
        found = self._base.get(base) if base else None
        if found:
            status = MatchStatus.BASE if len(found) == 1 else MatchStatus.AMBIGUOUS
            return MatchResult(order_number=number, status=status, candidates=tuple(found))

        return MatchResult(order_number=number, status=MatchStatus.UNMATCHED)

    def resolve(self, result: MatchResult) -> Optional[OrderRecord]:
        """Single order to annotate, or None (unmatched, or ambiguous under REJECT)."""
        if result.matched:
            return result.candidates[0]
        if result.status is MatchStatus.AMBIGUOUS and self.policy is AmbiguousMatchPolicy.EARLIEST:
            return _earliest(result.candidates)
        return None
