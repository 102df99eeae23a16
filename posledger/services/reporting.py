"""
Reconciliation reporting: POS ledger + aggregator orders, merged on read.

Nothing here writes. Both channels are turned into one tagged union
(`PosSale | AggregatorSale`) and every aggregate below is a fold over a list
of those, so the device and the cloud service share the same arithmetic.
Volumes are a single restaurant's day, so nothing is cached.
"""
import math
from collections import defaultdict
from datetime import date, datetime
from typing import Annotated, Iterable, Literal, Union

from pydantic import BaseModel, Field

from posledger.schemas.reports import (
    AggregatorSummary, CombinedSummary, HourlySales, OrderTypeTotals, SalesBreakdown,
    SalesSummary, SourceBreakdown, SourceTotals, TopItem,
)
from posledger.schemas.sales import SaleRecord
from posledger.services.aggregator import AggregatorChannel, AggregatorItem, AggregatorSale
from posledger.services.ledger import LedgerStore
from posledger.util.dates import local_day_bounds, local_hour

PAYMENT_METHODS = ("cash", "card", "upi", "wallet", "pending")
ORDER_TYPES = ("dine-in", "takeout", "delivery")


class PosSale(BaseModel):
    kind: Literal["pos"] = "pos"
    sale: SaleRecord


ReportRecord = Annotated[Union[PosSale, AggregatorSale], Field(discriminator="kind")]


class ReportItem(BaseModel):
    name: str
    quantity: float
    revenue: float


# ── normalization ───────────────────────────────────────────────────────────
def normalize_aggregator_item(item: AggregatorItem) -> ReportItem:
    price = item.price or item.unit_price or 0
    qty = item.quantity or 1
    return ReportItem(name=item.name or item.item_name or "Unknown Item", quantity=qty, revenue=price * qty)


def report_items(record: ReportRecord) -> list[ReportItem]:
    if isinstance(record, PosSale):
        return [ReportItem(name=i.name, quantity=i.quantity, revenue=i.subtotal) for i in record.sale.items]
    return [normalize_aggregator_item(i) for i in record.items]


def total_of(record: ReportRecord) -> float:
    return record.sale.grand_total if isinstance(record, PosSale) else record.total


def tax_of(record: ReportRecord) -> float:
    return record.sale.cgst + record.sale.sgst if isinstance(record, PosSale) else record.tax


def discount_of(record: ReportRecord) -> float:
    return record.sale.discount if isinstance(record, PosSale) else record.discount


def service_charge_of(record: ReportRecord) -> float:
    return record.sale.service_charge if isinstance(record, PosSale) else 0.0


def source_of(record: ReportRecord) -> str:
    return record.sale.source.value if isinstance(record, PosSale) else record.source


def payment_method_of(record: ReportRecord) -> str:
    if isinstance(record, PosSale):
        return record.sale.payment_method.value
    return record.payment_method or "online"


def order_type_of(record: ReportRecord) -> str:
    return record.sale.order_type.value if isinstance(record, PosSale) else "delivery"


def timestamp_of(record: ReportRecord) -> datetime:
    # aggregator orders are bucketed by when they were placed
    return record.sale.completed_at if isinstance(record, PosSale) else record.created_at


def completed_of(record: ReportRecord) -> datetime:
    if isinstance(record, PosSale):
        return record.sale.completed_at
    return record.delivered_at or record.created_at


def pos_records(sales: Iterable[SaleRecord]) -> list[PosSale]:
    return [PosSale(sale=s) for s in sales]


# ── folds ───────────────────────────────────────────────────────────────────
def summarize(records: list[ReportRecord], with_sources: bool = False) -> SalesSummary:
    total_sales = math.fsum(total_of(r) for r in records)
    total_orders = len(records)
    summary = SalesSummary(
        total_sales=total_sales,
        total_orders=total_orders,
        average_order_value=total_sales / total_orders if total_orders > 0 else 0.0,
        total_tax=math.fsum(tax_of(r) for r in records),
        total_discount=math.fsum(discount_of(r) for r in records),
        total_service_charge=math.fsum(service_charge_of(r) for r in records),
    )
    if with_sources:
        summary.by_source = by_source(records)
    return summary


def by_source(records: list[ReportRecord]) -> dict[str, SourceTotals]:
    out: dict[str, SourceTotals] = {}
    for r in records:
        t = out.setdefault(source_of(r), SourceTotals())
        t.orders += 1
        t.sales += total_of(r)
    return out


def payment_breakdown(records: list[ReportRecord]) -> dict[str, float]:
    out = {m: 0.0 for m in PAYMENT_METHODS}
    for r in records:
        m = payment_method_of(r)
        out[m] = out.get(m, 0.0) + total_of(r)
    return out


def order_type_breakdown(records: list[ReportRecord]) -> dict[str, OrderTypeTotals]:
    out = {t: OrderTypeTotals() for t in ORDER_TYPES}
    for r in records:
        t = out.setdefault(order_type_of(r), OrderTypeTotals())
        t.count += 1
        t.sales += total_of(r)
    return out


def hourly(records: list[ReportRecord], tz: str = "UTC") -> list[HourlySales]:
    """24 buckets by local hour, zero-filled."""
    buckets = [HourlySales(hour=h) for h in range(24)]
    for r in records:
        b = buckets[local_hour(timestamp_of(r), tz)]
        b.sales += total_of(r)
        b.orders += 1
    return buckets


def top_items(records: list[ReportRecord], limit: int = 10) -> list[TopItem]:
    totals: dict[str, list[float]] = defaultdict(lambda: [0.0, 0.0])
    for r in records:
        for item in report_items(r):
            t = totals[item.name]
            t[0] += item.quantity
            t[1] += item.revenue
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1][0], kv[0]))
    return [TopItem(name=name, quantity=q, revenue=rev) for name, (q, rev) in ranked[:limit]]


def summarize_aggregators(orders: list[AggregatorSale]) -> AggregatorSummary:
    out = AggregatorSummary()
    for o in orders:
        t = out.by_aggregator.setdefault(o.aggregator, SourceTotals())
        t.orders += 1
        t.sales += o.total
        out.total_sales += o.total
        out.total_orders += 1
        out.total_tax += o.tax
        out.total_discount += o.discount
    return out


def combine(pos: SalesSummary, agg: AggregatorSummary) -> CombinedSummary:
    total_sales = pos.total_sales + agg.total_sales
    total_orders = pos.total_orders + agg.total_orders
    summary = SalesSummary(
        total_sales=total_sales,
        total_orders=total_orders,
        average_order_value=total_sales / total_orders if total_orders > 0 else 0.0,
        total_tax=pos.total_tax + agg.total_tax,
        total_discount=pos.total_discount + agg.total_discount,
        total_service_charge=pos.total_service_charge,
    )
    by_agg = agg.by_aggregator
    sources = SourceBreakdown(
        pos=SourceTotals(orders=pos.total_orders, sales=pos.total_sales),
        zomato=by_agg.get("zomato", SourceTotals()),
        swiggy=by_agg.get("swiggy", SourceTotals()),
        website=SourceTotals(
            orders=sum(by_agg[k].orders for k in ("direct", "website") if k in by_agg),
            sales=sum(by_agg[k].sales for k in ("direct", "website") if k in by_agg),
        ),
    )
    return CombinedSummary(summary=summary, source_breakdown=sources, pos=pos, aggregator=agg)


def breakdown(records: list[ReportRecord], tz: str = "UTC") -> SalesBreakdown:
    return SalesBreakdown(
        by_payment_method=payment_breakdown(records),
        by_order_type=order_type_breakdown(records),
        by_hour=hourly(records, tz),
    )


# ── device-side reporter ────────────────────────────────────────────────────
class ReconciliationReporter:
    def __init__(self, ledger: LedgerStore, aggregators: AggregatorChannel, tz: str = "UTC"):
        self.ledger = ledger
        self.aggregators = aggregators
        self.tz = tz

    def _bounds(self, day: str | date, end_day: str | date | None = None) -> tuple[datetime, datetime]:
        return local_day_bounds(day, end_day, self.tz)

    def pos_records(self, tenant_id: str, day: str | date, end_day: str | date | None = None) -> list[PosSale]:
        start, end = self._bounds(day, end_day)
        return pos_records(self.ledger.between(tenant_id, start, end))

    def aggregator_transactions(self, tenant_id: str | None, day: str | date,
                                end_day: str | date | None = None) -> list[AggregatorSale]:
        start, end = self._bounds(day, end_day)
        return self.aggregators.fulfilled(start, end, tenant_id)

    # POS only
    def sales_summary(self, tenant_id, day, end_day=None) -> SalesSummary:
        return summarize(self.pos_records(tenant_id, day, end_day))

    def payment_breakdown(self, tenant_id, day, end_day=None) -> dict[str, float]:
        return payment_breakdown(self.pos_records(tenant_id, day, end_day))

    def order_type_breakdown(self, tenant_id, day, end_day=None) -> dict[str, OrderTypeTotals]:
        return order_type_breakdown(self.pos_records(tenant_id, day, end_day))

    def hourly_sales(self, tenant_id, day, end_day=None) -> list[HourlySales]:
        return hourly(self.pos_records(tenant_id, day, end_day), self.tz)

    def top_items(self, tenant_id, day, end_day=None, limit: int = 10) -> list[TopItem]:
        return top_items(self.pos_records(tenant_id, day, end_day), limit)

    def breakdown(self, tenant_id, day, end_day=None) -> SalesBreakdown:
        return breakdown(self.pos_records(tenant_id, day, end_day), self.tz)

    # aggregator only
    def aggregator_summary(self, tenant_id, day, end_day=None) -> AggregatorSummary:
        return summarize_aggregators(self.aggregator_transactions(tenant_id, day, end_day))

    # both channels
    def combined_summary(self, tenant_id, day, end_day=None) -> CombinedSummary:
        return combine(self.sales_summary(tenant_id, day, end_day),
                       self.aggregator_summary(tenant_id, day, end_day))

    def all_transactions(self, tenant_id, day, end_day=None) -> list[ReportRecord]:
        records: list[ReportRecord] = [
            *self.pos_records(tenant_id, day, end_day),
            *self.aggregator_transactions(tenant_id, day, end_day),
        ]
        records.sort(key=completed_of, reverse=True)
        return records

    def combined_hourly_sales(self, tenant_id, day, end_day=None) -> list[HourlySales]:
        return hourly(self.all_transactions(tenant_id, day, end_day), self.tz)

    def combined_top_items(self, tenant_id, day, end_day=None, limit: int = 10) -> list[TopItem]:
        return top_items(self.all_transactions(tenant_id, day, end_day), limit)
