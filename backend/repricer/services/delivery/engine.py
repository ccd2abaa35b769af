# 运费归因主流程
#   manifest import -> annotate orders -> recalculate
#   recalculate: snapshot -> allocate -> aggregate -> (override | direct | estimate) -> write

from __future__ import annotations
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from repricer.core.logging import tenant_logger
from repricer.services.delivery.allocation import LineValueAllocator, SkuAggregator, SkuDeliveryStats
from repricer.services.delivery.carrier_registry import (
    CarrierRegistry,
    carrier_display_name,
    is_excluded_carrier,
    normalize_carrier,
)
from repricer.services.delivery.delivery_config import DeliveryCostConfig
from repricer.services.delivery.errors import InvalidManifestError
from repricer.services.delivery.estimation import CategoryFallbackEstimator, index_products, needs_estimate
from repricer.services.delivery.overrides import OverrideRule, OverrideRuleEngine
from repricer.services.delivery.ports import DeliveryCostRepository
from repricer.services.delivery.record_matcher import DeliveryRecordMatcher, MatchStatus
from repricer.services.delivery.types import Carrier, CostSource, DeliveryAnnotation, ManifestRow, OrderRecord
from repricer.services.delivery.writer import ProductCostWriter, WriteSummary
from repricer.utils.serialization import to_jsonable


# ---------- 报告 ----------
@dataclass
class AggregationSummary:
    orders_with_delivery_data: int = 0
    orders_processed: int = 0
    orders_skipped: Dict[str, int] = field(default_factory=dict)
    skus_analyzed: int = 0
    skus_with_evidence: int = 0
    skus_without_product: int = 0


@dataclass
class DeliveryCostReport:
    account_id: str
    mode: str
    aggregation: AggregationSummary
    writes: WriteSummary
    overall_average: Optional[Decimal] = None
    categories_with_data: int = 0
    category_summary: List[Dict[str, Any]] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def products_changed(self) -> int:
        return self.writes.changed

    @property
    def message(self) -> str:
        w = self.writes
        return (
            f"{self.aggregation.orders_processed} orders used, "
            f"{w.updated_from_orders} from orders, {w.filled_from_estimates} estimated, "
            f"{w.overridden} overridden, {w.unchanged} unchanged, {w.no_source} without data"
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class DeliveryImportReport:
    account_id: str
    rows_processed: int = 0
    orders_matched: int = 0
    orders_not_found: int = 0
    orders_ambiguous: int = 0
    ambiguous_resolved: int = 0
    orders_skipped_excluded: int = 0
    carriers_found: List[str] = field(default_factory=list)
    excluded_labels: List[str] = field(default_factory=list)
    new_carriers: List[str] = field(default_factory=list)
    carriers_missing_cost: List[str] = field(default_factory=list)
    unmatched_samples: List[str] = field(default_factory=list)
    ambiguous_samples: List[Dict[str, Any]] = field(default_factory=list)
    note: str = ""
    recalculation: Optional[DeliveryCostReport] = None

    @property
    def products_changed(self) -> int:
        return self.recalculation.products_changed if self.recalculation else 0

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


def _import_note(report: DeliveryImportReport) -> str:
    if report.orders_matched == 0:
        return "No orders matched. Check that the order numbers in the delivery summary match your channel order numbers."
    parts = [f"Updated {report.orders_matched} orders with delivery info."]
    if report.products_changed > 0:
        parts.append(f"Updated {report.products_changed} products with delivery costs.")
    if report.new_carriers:
        parts.append("New carriers created - please set costs on the Delivery Costs page.")
    if report.carriers_missing_cost:
        parts.append(
            f"Carriers missing costs ({', '.join(report.carriers_missing_cost)}) - "
            "set costs to calculate delivery cost per SKU."
        )
    return " ".join(parts)


def parse_manifest(rows: Optional[Iterable[Union[ManifestRow, Mapping[str, Any]]]]) -> List[ManifestRow]:
    """Upload rows -> ManifestRow. An empty upload is an operator error, not an empty import."""
    parsed = [r if isinstance(r, ManifestRow) else ManifestRow.from_mapping(r) for r in (rows or [])]
    if not parsed:
        raise InvalidManifestError("No delivery data provided")
    return parsed


def _direct_detail(stats: SkuDeliveryStats) -> str:
    carrier = stats.predominant_carrier
    label = carrier_display_name(carrier) if carrier else "-"
    return f"{stats.order_count} order lines, mostly {label}"



class DeliveryCostEngine:
    """
    Stateless per call: every method reads its own snapshot through the repository.
    One writer per tenant at a time is the caller's job (the celery task / API handler).
    """

    def __init__(
        self,
        repository: DeliveryCostRepository,
        config: Optional[DeliveryCostConfig] = None,
        rules: Optional[Iterable[OverrideRule]] = None,
    ):
        self.repository = repository
        self.config = config or DeliveryCostConfig()
        if rules is None:
            self.overrides = OverrideRuleEngine.from_config(self.config)
        else:
            self.overrides = OverrideRuleEngine(rules, self.config.override_cost)

    def _writer(self) -> ProductCostWriter:
        cfg = self.config
        return ProductCostWriter(
            self.repository,
            tolerance=cfg.change_tolerance,
            batch_size=cfg.write_batch_size,
            sample_limit=cfg.report_sample_limit,
        )

    def _aggregate(self, orders: Sequence[OrderRecord], registry: CarrierRegistry):
        allocator = LineValueAllocator(registry)
        aggregator = SkuAggregator()
        summary = AggregationSummary(orders_with_delivery_data=len(orders))

        for order in orders:
            alloc = allocator.allocate_order(order)
            if alloc.skipped:
                key = alloc.skip_reason.value
                summary.orders_skipped[key] = summary.orders_skipped.get(key, 0) + 1
                continue
            aggregator.add(alloc)
            summary.orders_processed += 1

        summary.skus_analyzed = len(aggregator)
        summary.skus_with_evidence = aggregator.with_evidence
        return aggregator, summary


    """
    全量重算:
        1) 读快照 (carriers / products / orders with delivery data)
        2) 分摊 + SKU 汇总
        3) 类目均值
        4) 每个产品: override 规则 -> 直接证据 -> 兜底估算
        5) 分批写回
    """
    def recalculate(self, account_id: str) -> DeliveryCostReport:
        t0 = time.monotonic()
        log = tenant_logger(__name__, account_id)
        repo = self.repository

        # 1) snapshot
        registry = CarrierRegistry(repo.get_all_carrier_costs(account_id))
        products = list(repo.get_all_products(account_id))
        orders = list(repo.get_all_orders_with_delivery_data(account_id))
        log.info("recalculate snapshot: orders=%d products=%d carriers=%d", len(orders), len(products), len(registry))

        # 2) allocate + aggregate
        aggregator, agg = self._aggregate(orders, registry)
        products_by_sku = index_products(products)
        agg.skus_without_product = sum(1 for sku, _ in aggregator.items() if sku not in products_by_sku)
        if agg.orders_skipped:
            log.info("orders skipped: %s", agg.orders_skipped)

        # 3) category averages
        estimator = CategoryFallbackEstimator.build(aggregator, products_by_sku)

        # 4) per product
        writer = self._writer()
        for product in products:
            stats = aggregator.get(product.sku)
            has_direct = stats is not None and stats.has_direct_evidence
            direct = stats.delivery_cost if has_direct else None
            counts = dict(stats.carrier_counts) if has_direct else None

            current = direct if direct is not None else product.delivery_cost
            decision = self.overrides.evaluate(product, current)
            if decision is not None:
                # rule fired: no fallback estimate for this product
                if decision.raised:
                    writer.stage(product, decision.value, CostSource.OVERRIDE, decision.detail, counts)
                elif direct is not None:
                    writer.stage(product, direct, CostSource.DIRECT, _direct_detail(stats), counts)
                else:
                    writer.keep(product)
                continue

            if direct is not None:
                writer.stage(product, direct, CostSource.DIRECT, _direct_detail(stats), counts)
                continue

            if not needs_estimate(product):
                writer.keep(product)
                continue

            est = estimator.estimate(product)
            if est.value is None:
                writer.no_source(product, est.detail)
            else:
                writer.stage(product, est.value, est.source, est.detail)

        # 5) write
        writes = writer.flush(account_id)

        report = DeliveryCostReport(
            account_id=account_id,
            mode="recalculate",
            aggregation=agg,
            writes=writes,
            overall_average=estimator.overall_average,
            categories_with_data=len(estimator),
            category_summary=estimator.summary(self.config.category_summary_limit),
            elapsed_seconds=round(time.monotonic() - t0, 3),
        )
        log.info("recalculate done: %s (%.2fs)", report.message, report.elapsed_seconds)
        return report


    """
    只做兜底估算 (no overrides written): products with direct evidence or covered by an
    override rule are left alone, the rest get the category / overall average under the
    usual gap rule.
    """
    def fill_missing(self, account_id: str) -> DeliveryCostReport:
        t0 = time.monotonic()
        log = tenant_logger(__name__, account_id)
        repo = self.repository

        registry = CarrierRegistry(repo.get_all_carrier_costs(account_id))
        products = list(repo.get_all_products(account_id))
        orders = list(repo.get_all_orders_with_delivery_data(account_id))

        aggregator, agg = self._aggregate(orders, registry)
        products_by_sku = index_products(products)
        agg.skus_without_product = sum(1 for sku, _ in aggregator.items() if sku not in products_by_sku)
        estimator = CategoryFallbackEstimator.build(aggregator, products_by_sku)

        writer = self._writer()
        for product in products:
            stats = aggregator.get(product.sku)
            if (stats is not None and stats.has_direct_evidence) or not needs_estimate(product):
                writer.keep(product)
                continue
            # products an override rule covers never take an average; recalculate owns them
            if self.overrides.evaluate(product, product.delivery_cost) is not None:
                writer.keep(product)
                continue
            est = estimator.estimate(product)
            if est.value is None:
                writer.no_source(product, est.detail)
            else:
                writer.stage(product, est.value, est.source, est.detail)

        writes = writer.flush(account_id)
        report = DeliveryCostReport(
            account_id=account_id,
            mode="fill_missing",
            aggregation=agg,
            writes=writes,
            overall_average=estimator.overall_average,
            categories_with_data=len(estimator),
            category_summary=estimator.summary(self.config.category_summary_limit),
            elapsed_seconds=round(time.monotonic() - t0, 3),
        )
        log.info("fill missing done: %s (%.2fs)", report.message, report.elapsed_seconds)
        return report


    """
    导入仓库发货汇总:
        1) match each row to an order (exact, then base number); excluded carriers skipped
        2) annotate matched orders (carrier / raw label / parcels)
        3) placeholder rows for carriers seen for the first time
        4) full recalculate on a fresh snapshot
    Unmatched / ambiguous / excluded rows are counted, never raised.
    """
    def import_manifest(
        self,
        account_id: str,
        rows: Iterable[Union[ManifestRow, Mapping[str, Any]]],
    ) -> DeliveryImportReport:
        if rows is None:
            raise InvalidManifestError("manifest rows are required")
        parsed = [r if isinstance(r, ManifestRow) else ManifestRow.from_mapping(r) for r in rows]
        # 空 manifest: nothing to annotate, still recalculates

        log = tenant_logger(__name__, account_id)
        repo = self.repository
        cfg = self.config
        report = DeliveryImportReport(account_id=account_id, rows_processed=len(parsed))

        registry = CarrierRegistry(repo.get_all_carrier_costs(account_id))
        matcher = DeliveryRecordMatcher(
            repo.get_all_orders(account_id),
            separator=cfg.order_no_separator,
            policy=cfg.ambiguous_match_policy,
        )
        log.info("manifest import: rows=%d orders_indexed=%d", len(parsed), len(matcher))

        found: set = set()
        excluded: List[str] = []
        limit = cfg.report_sample_limit

        # 1) + 2)
        for row in parsed:
            if is_excluded_carrier(row.carrier):
                report.orders_skipped_excluded += 1
                label = row.carrier.strip()
                if label and label not in excluded:
                    excluded.append(label)
                continue

            carrier = normalize_carrier(row.carrier)
            if carrier is not Carrier.UNKNOWN:
                found.add(carrier)

            result = matcher.match(row)
            order = matcher.resolve(result)

            if result.status is MatchStatus.AMBIGUOUS:
                report.orders_ambiguous += 1
                if len(report.ambiguous_samples) < limit:
                    report.ambiguous_samples.append({
                        "order_number": result.order_number,
                        "candidates": [o.channel_order_no for o in result.candidates],
                    })
                if order is not None:
                    report.ambiguous_resolved += 1

            if order is None:
                if result.status is MatchStatus.UNMATCHED:
                    report.orders_not_found += 1
                    if len(report.unmatched_samples) < limit:
                        report.unmatched_samples.append(result.order_number)
                continue

            repo.update_order_delivery(
                account_id,
                order.order_id,
                DeliveryAnnotation(carrier=carrier, raw_carrier=row.carrier.strip(), parcels=row.parcels),
            )
            report.orders_matched += 1

        # 3) placeholders
        for placeholder in registry.placeholders_for(found):
            repo.put_carrier_cost(account_id, placeholder)
            report.new_carriers.append(placeholder.carrier_id)
            log.info("new carrier registered with zero cost: %s", placeholder.carrier_id)

        report.carriers_found = sorted(c.value for c in found)
        report.excluded_labels = excluded
        report.carriers_missing_cost = [c.value for c in registry.missing_costs(found)]

        log.info(
            "manifest matched=%d not_found=%d ambiguous=%d excluded=%d",
            report.orders_matched, report.orders_not_found, report.orders_ambiguous, report.orders_skipped_excluded,
        )

        # 4) recalculate from a fresh snapshot
        report.recalculation = self.recalculate(account_id)
        report.note = _import_note(report)
        return report
