from decimal import Decimal

import pytest

from conftest import ACCOUNT, carrier_cost, make_line, make_order, make_product
from repricer.services.delivery.delivery_config import DeliveryCostConfig
from repricer.services.delivery.engine import DeliveryCostEngine, parse_manifest
from repricer.services.delivery.errors import InvalidManifestError
from repricer.services.delivery.record_matcher import AmbiguousMatchPolicy
from repricer.services.delivery.types import Carrier, ManifestRow


@pytest.fixture
def engine(repo, config):
    return DeliveryCostEngine(repo, config=config)


def _seed_taps(repo):
    repo.add_carriers(carrier_cost(Carrier.DPD, "3"), carrier_cost(Carrier.DX, "4"))
    repo.add_orders(
        make_order("o1", carrier=Carrier.DPD, lines=[make_line("T1", line_total="10")]),
        make_order("o2", carrier=Carrier.DX, lines=[make_line("T2", line_total="10")]),
    )
    repo.add_products(
        make_product("T1", category="Taps"),
        make_product("T2", category="Taps"),
        make_product("C", category="Taps"),
    )


def test_per_unit_cost_from_orders(repo, engine):
    repo.add_carriers(carrier_cost(Carrier.DPD, "10.00"), carrier_cost(Carrier.DX, "24.00"))
    repo.add_orders(
        make_order("o1", carrier=Carrier.DPD, lines=[make_line("A", line_total="80"), make_line("B", line_total="20")]),
        make_order("o2", carrier=Carrier.DX, lines=[make_line("A", quantity=3, line_total="240")]),
    )
    repo.add_products(make_product("A"), make_product("B"))

    report = engine.recalculate(ACCOUNT)

    # A: (8 + 24) / 4 units
    assert repo.product("A").delivery_cost == Decimal("8.00")
    assert repo.product("A").delivery_cost_source == "direct"
    assert repo.product("A").delivery_carrier_counts == {"dpd": 1, "dx": 1}
    assert repo.product("B").delivery_cost == Decimal("2.00")
    assert report.writes.updated_from_orders == 2
    assert report.aggregation.orders_processed == 2
    assert report.aggregation.skus_with_evidence == 2


def test_category_average_fills_gap(repo, engine):
    _seed_taps(repo)

    report = engine.recalculate(ACCOUNT)

    c = repo.product("C")
    assert c.delivery_cost == Decimal("3.50")
    assert c.delivery_cost_source == "category"
    assert report.writes.filled_from_estimates == 1
    assert report.categories_with_data == 1
    assert report.category_summary[0]["category"] == "Taps"


def test_direct_evidence_replaces_old_estimate(repo, engine):
    _seed_taps(repo)
    repo.add_products(make_product("T1", category="Taps", cost="9.99", source="category"))

    engine.recalculate(ACCOUNT)

    assert repo.product("T1").delivery_cost == Decimal("3.00")
    assert repo.product("T1").delivery_cost_source == "direct"


def test_manual_cost_is_never_replaced_by_estimate(repo, engine):
    _seed_taps(repo)
    repo.add_products(make_product("C", category="Taps", cost="12.00", source="manual"))

    report = engine.recalculate(ACCOUNT)

    assert repo.product("C").delivery_cost == Decimal("12.00")
    assert report.writes.filled_from_estimates == 0


def test_suite_override_never_lowers_direct_evidence(repo, engine):
    repo.add_carriers(carrier_cost(Carrier.ARROWXL, "60"))
    repo.add_orders(make_order("o1", carrier=Carrier.ARROWXL, lines=[make_line("S1", line_total="900")]))
    repo.add_products(make_product("S1", title="Milano Bathroom Suite"))

    report = engine.recalculate(ACCOUNT)

    assert repo.product("S1").delivery_cost == Decimal("60.00")
    assert repo.product("S1").delivery_cost_source == "direct"
    assert report.writes.overridden == 0


def test_suite_override_raises_bare_product_and_skips_estimate(repo, engine):
    _seed_taps(repo)
    repo.add_products(make_product("S2", title="Corner suite", category="Taps"))
    repo.add_products(make_product("H1", title="Stone bath", category="Taps", weight="80"))

    report = engine.recalculate(ACCOUNT)

    assert repo.product("S2").delivery_cost == Decimal("45.00")
    assert repo.product("S2").delivery_cost_source == "override"
    assert repo.product("H1").delivery_cost == Decimal("45.00")
    assert report.writes.overridden == 2
    assert {s.sku for s in report.writes.overridden_samples} == {"S2", "H1"}


def test_second_run_writes_nothing(repo, engine):
    _seed_taps(repo)
    repo.add_products(make_product("S2", title="Corner suite"), make_product("Z", category="Mirrors"))

    first = engine.recalculate(ACCOUNT)
    batches_after_first = len(repo.batches)
    second = engine.recalculate(ACCOUNT)

    assert first.products_changed > 0
    assert second.products_changed == 0
    assert len(repo.batches) == batches_after_first


def test_excluded_carrier_orders_never_bill(repo, engine):
    repo.add_carriers(carrier_cost(Carrier.DPD, "10"), carrier_cost(Carrier.CONSOLIDATED, "50"))
    repo.add_orders(
        make_order("o1", carrier=Carrier.DPD, raw="Hold Delivery", lines=[make_line("A", line_total="10")]),
        make_order("o2", carrier=Carrier.CONSOLIDATED, lines=[make_line("A", line_total="10")]),
    )
    repo.add_products(make_product("A"))

    report = engine.recalculate(ACCOUNT)

    assert report.aggregation.orders_skipped == {"excluded_carrier": 2}
    assert repo.product("A").delivery_cost is None
    assert report.writes.no_source == 1


def test_unconfigured_carrier_skips_order(repo, engine):
    repo.add_orders(make_order("o1", carrier=Carrier.HOMEFLEET, lines=[make_line("A", line_total="10")]))
    repo.add_products(make_product("A"))

    report = engine.recalculate(ACCOUNT)

    assert report.aggregation.orders_skipped == {"no_carrier_cost": 1}
    assert report.aggregation.skus_analyzed == 0


def test_writes_are_batched(repo):
    repo.add_carriers(carrier_cost(Carrier.DPD, "5"))
    skus = [f"SKU{i:03d}" for i in range(55)]
    repo.add_orders(*[make_order(f"o{i}", carrier=Carrier.DPD, lines=[make_line(s, line_total="1")]) for i, s in enumerate(skus)])
    repo.add_products(*[make_product(s) for s in skus])

    DeliveryCostEngine(repo, config=DeliveryCostConfig(write_batch_size=25)).recalculate(ACCOUNT)

    assert [len(b) for b in repo.batches] == [25, 25, 5]


def test_fill_missing_only_estimates(repo, engine):
    _seed_taps(repo)

    report = engine.fill_missing(ACCOUNT)

    assert report.mode == "fill_missing"
    assert repo.product("C").delivery_cost == Decimal("3.50")
    # evidence SKUs are left alone
    assert repo.product("T1").delivery_cost is None
    assert report.writes.updated_from_orders == 0


def test_fill_missing_leaves_override_products_alone(repo, engine):
    _seed_taps(repo)
    repo.add_products(
        make_product("S2", title="Corner suite", category="Taps"),
        make_product("H1", title="Stone bath", category="Taps", weight="80"),
    )

    report = engine.fill_missing(ACCOUNT)

    # suite / heavy items never take a category or overall average
    assert repo.product("S2").delivery_cost is None
    assert repo.product("H1").delivery_cost is None
    assert repo.product("C").delivery_cost == Decimal("3.50")
    assert report.writes.filled_from_estimates == 1
    assert report.writes.overridden == 0

    # recalculate then raises them once and a further fill changes nothing
    assert engine.recalculate(ACCOUNT).writes.overridden == 2
    assert engine.fill_missing(ACCOUNT).products_changed == 0
    assert repo.product("S2").delivery_cost == Decimal("45.00")


def test_estimate_backed_by_orders_is_relabelled_direct(repo, engine):
    _seed_taps(repo)
    # stored 3.00 as an estimate; T1's own orders now say 3.00 as well
    repo.add_products(make_product("T1", category="Taps", cost="3.00", source="category"))

    report = engine.recalculate(ACCOUNT)

    t1 = repo.product("T1")
    assert t1.delivery_cost == Decimal("3.00")
    assert t1.delivery_cost_source == "direct"
    assert t1.delivery_carrier_counts == {"dpd": 1}
    assert "T1" in {s.sku for s in report.writes.updated_samples}
    assert engine.recalculate(ACCOUNT).products_changed == 0


def test_report_to_dict_is_json_ready(repo, engine):
    _seed_taps(repo)
    data = engine.recalculate(ACCOUNT).to_dict()

    assert data["mode"] == "recalculate"
    assert data["overall_average"] == 3.5
    assert data["writes"]["filled_samples"][0]["source"] == "category"


# ---------- manifest import ----------
def _seed_for_import(repo):
    repo.add_carriers(carrier_cost(Carrier.DPD, "10.00"))
    repo.add_orders(
        make_order("o1", "65061", lines=[make_line("A", line_total="80"), make_line("B", line_total="20")]),
        make_order("o2", "12320364167549-A", lines=[make_line("A", line_total="50")]),
        make_order("o3", "777-A", lines=[make_line("B", line_total="5")]),
        make_order("o4", "777-B", lines=[make_line("B", line_total="5")]),
        make_order("o5", "88001", lines=[make_line("C", line_total="5")]),
    )
    repo.add_products(make_product("A"), make_product("B"), make_product("C"))


def test_import_manifest_annotates_and_recalculates(repo, engine):
    _seed_for_import(repo)
    rows = [
        {"orderNumber": "65061", "parcels": 2, "carrier": "DPD Next Day"},
        {"orderNumber": "12320364167549-REM", "parcels": 1, "carrier": "HomeFleet - Route 9"},
        {"orderNumber": "777", "parcels": 1, "carrier": "DPD"},
        {"orderNumber": "55555", "parcels": 1, "carrier": "DPD"},
        {"orderNumber": "88001", "parcels": 1, "carrier": "Hold Delivery"},
        {"orderNumber": "88001", "parcels": 1, "carrier": "Royal Mail"},
    ]

    report = engine.import_manifest(ACCOUNT, rows)

    assert report.rows_processed == 6
    assert report.orders_matched == 3          # 65061, base 12320364167549, 88001 (unknown carrier)
    assert report.orders_not_found == 1
    assert report.orders_ambiguous == 1
    assert report.orders_skipped_excluded == 1
    assert report.unmatched_samples == ["55555"]
    assert report.ambiguous_samples[0]["candidates"] == ["777-A", "777-B"]
    assert report.excluded_labels == ["Hold Delivery"]
    assert report.carriers_found == ["dpd", "homefleet"]
    assert report.new_carriers == ["homefleet"]
    assert report.carriers_missing_cost == ["homefleet"]

    annotated = {order_id: a for order_id, a in repo.annotations}
    assert annotated["o1"].carrier is Carrier.DPD
    assert annotated["o1"].parcels == 2
    assert annotated["o2"].raw_carrier == "HomeFleet - Route 9"
    assert annotated["o5"].carrier is Carrier.UNKNOWN
    assert "o3" not in annotated and "o4" not in annotated

    # placeholder row was persisted with zero cost
    assert repo.carrier_puts[0].carrier_id == "homefleet"
    assert repo.carrier_puts[0].cost_per_shipment == Decimal("0")

    # only o1 has a billable carrier: A 8.00, B 2.00
    assert repo.product("A").delivery_cost == Decimal("8.00")
    assert repo.product("B").delivery_cost == Decimal("2.00")
    assert report.recalculation.aggregation.orders_skipped == {"no_carrier_cost": 1}
    assert "Updated 3 orders with delivery info." in report.note
    assert "New carriers created" in report.note
    assert "Carriers missing costs (homefleet)" in report.note


def test_import_manifest_earliest_policy_resolves_ambiguity(repo):
    _seed_for_import(repo)
    engine = DeliveryCostEngine(repo, config=DeliveryCostConfig(ambiguous_match_policy=AmbiguousMatchPolicy.EARLIEST))

    report = engine.import_manifest(ACCOUNT, [ManifestRow(order_number="777", parcels=1, carrier="DPD")])

    assert report.orders_ambiguous == 1
    assert report.ambiguous_resolved == 1
    assert report.orders_matched == 1
    assert repo.annotations[0][0] == "o3"


def test_import_with_no_matches_explains(repo, engine):
    _seed_for_import(repo)
    report = engine.import_manifest(ACCOUNT, [{"orderNumber": "nope", "parcels": 1, "carrier": "DPD"}])
    assert report.orders_matched == 0
    assert report.note.startswith("No orders matched.")


def test_parse_manifest_rejects_empty_upload():
    with pytest.raises(InvalidManifestError):
        parse_manifest([])
    assert parse_manifest([{"orderNumber": "1", "parcels": 1, "carrier": "DX"}])[0].carrier == "DX"
