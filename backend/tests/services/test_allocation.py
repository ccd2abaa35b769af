from decimal import Decimal

from conftest import carrier_cost, make_line, make_order
from repricer.services.delivery.allocation import (
    LineValueAllocator,
    SkipReason,
    SkuAggregator,
    SkuDeliveryStats,
    line_value,
)
from repricer.services.delivery.carrier_registry import CarrierRegistry
from repricer.services.delivery.types import Carrier


def _allocator(*rows):
    return LineValueAllocator(CarrierRegistry(rows))


def test_line_value_prefers_line_total():
    assert line_value(make_line("A", quantity=2, line_total="30", unit_price="99")) == Decimal("30")


def test_line_value_falls_back_to_unit_price_times_quantity():
    assert line_value(make_line("A", quantity=3, unit_price="4.50")) == Decimal("13.50")
    # missing quantity counts as 1, missing price as 0
    assert line_value(make_line("A", quantity=None, unit_price="4.50")) == Decimal("4.50")
    assert line_value(make_line("A", quantity=2)) == Decimal("0")


def test_value_weighted_split_eight_two():
    order = make_order("o1", carrier=Carrier.DPD, lines=[
        make_line("A", quantity=1, line_total="80"),
        make_line("B", quantity=1, line_total="20"),
    ])
    alloc = _allocator(carrier_cost(Carrier.DPD, "10.00")).allocate_order(order)

    assert not alloc.skipped
    assert [la.allocated_cost for la in alloc.lines] == [Decimal("8.00"), Decimal("2.00")]


def test_allocations_sum_to_carrier_cost():
    order = make_order("o1", carrier=Carrier.DPD, lines=[
        make_line("A", line_total="33.33"),
        make_line("B", line_total="12.07"),
        make_line("C", quantity=3, unit_price="7.19"),
    ])
    alloc = _allocator(carrier_cost(Carrier.DPD, "12.99")).allocate_order(order)

    total = sum(la.allocated_cost for la in alloc.lines)
    assert abs(total - Decimal("12.99")) < Decimal("1e-6")


def test_zero_value_order_splits_evenly():
    order = make_order("o1", carrier=Carrier.DPD, lines=[make_line("A"), make_line("B"), make_line("C")])
    lines = LineValueAllocator.allocate(order, Decimal("9"))

    assert [la.allocated_cost for la in lines] == [Decimal("3"), Decimal("3"), Decimal("3")]


def test_skip_reasons():
    alloc = _allocator(carrier_cost(Carrier.DPD, "10"))

    no_lines = alloc.allocate_order(make_order("o1", carrier=Carrier.DPD))
    excluded = alloc.allocate_order(make_order("o2", carrier=Carrier.CONSOLIDATED, lines=[make_line("A")]))
    excluded_raw = alloc.allocate_order(make_order("o3", carrier=Carrier.DPD, raw="Hold Delivery", lines=[make_line("A")]))
    no_cost = alloc.allocate_order(make_order("o4", carrier=Carrier.HOMEFLEET, lines=[make_line("A")]))
    no_carrier = alloc.allocate_order(make_order("o5", lines=[make_line("A")]))

    assert no_lines.skip_reason is SkipReason.NO_LINES
    assert excluded.skip_reason is SkipReason.EXCLUDED_CARRIER
    assert excluded_raw.skip_reason is SkipReason.EXCLUDED_CARRIER
    assert no_cost.skip_reason is SkipReason.NO_CARRIER_COST
    # never annotated is not the same as an excluded label
    assert no_carrier.skip_reason is SkipReason.NO_CARRIER


def test_aggregator_per_unit_cost_and_carrier_counts():
    allocator = _allocator(carrier_cost(Carrier.DPD, "10.00"))
    agg = SkuAggregator()
    # A gets 8.00 for 1 unit; B gets 2.00 for 1 unit
    agg.add(allocator.allocate_order(make_order("o1", carrier=Carrier.DPD, lines=[
        make_line("a", line_total="80"), make_line("B", line_total="20"),
    ])))

    stats = agg.get("A")
    assert stats.total_delivery_cost == Decimal("8.00")
    assert stats.total_quantity == 1
    assert stats.delivery_cost == Decimal("8.00")
    assert stats.carrier_counts == {"dpd": 1}
    assert stats.predominant_carrier == "dpd"
    assert "a" in agg and len(agg) == 2


def test_aggregator_ignores_blank_sku_but_keeps_its_share():
    allocator = _allocator(carrier_cost(Carrier.DPD, "10.00"))
    agg = SkuAggregator()
    agg.add(allocator.allocate_order(make_order("o1", carrier=Carrier.DPD, lines=[
        make_line("A", line_total="50"), make_line("", line_total="50"),
    ])))

    assert len(agg) == 1
    assert agg.get("A").total_delivery_cost == Decimal("5.00")


def test_quantity_spreads_cost_per_unit():
    allocator = _allocator(carrier_cost(Carrier.DPD, "12.00"))
    agg = SkuAggregator()
    agg.add(allocator.allocate_order(make_order("o1", carrier=Carrier.DPD, lines=[make_line("A", quantity=3, line_total="60")])))

    assert agg.get("A").delivery_cost == Decimal("4.00")


def test_stats_merge_matches_single_pass():
    allocator = _allocator(carrier_cost(Carrier.DPD, "10"), carrier_cost(Carrier.DX, "20"))
    orders = [
        make_order("o1", carrier=Carrier.DPD, lines=[make_line("A", line_total="10"), make_line("B", line_total="30")]),
        make_order("o2", carrier=Carrier.DX, lines=[make_line("A", quantity=2, line_total="40")]),
        make_order("o3", carrier=Carrier.DPD, lines=[make_line("B", line_total="5")]),
    ]

    whole = SkuAggregator()
    for o in orders:
        whole.add(allocator.allocate_order(o))

    left, right = SkuAggregator(), SkuAggregator()
    left.add(allocator.allocate_order(orders[0]))
    for o in orders[1:]:
        right.add(allocator.allocate_order(o))

    for merged in (left.merge(right), right.merge(left)):
        for sku, stats in whole.items():
            m = merged.get(sku)
            assert m.total_delivery_cost == stats.total_delivery_cost
            assert m.total_quantity == stats.total_quantity
            assert m.order_count == stats.order_count
            assert m.carrier_counts == stats.carrier_counts


def test_predominant_carrier_tie_is_deterministic():
    a = SkuDeliveryStats(carrier_counts={"dx": 2, "dpd": 2})
    assert a.predominant_carrier == "dpd"
    assert SkuDeliveryStats().predominant_carrier is None
