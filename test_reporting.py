# test_reporting.py
import uuid
from datetime import datetime, timezone

import pytest

from conftest import make_sale
from posledger.models.core import AggregatorOrder, SalesTransaction
from posledger.services.aggregator import AggregatorItem, AggregatorSale
from posledger.services.reporting import (
    PosSale, combine, normalize_aggregator_item, summarize, summarize_aggregators,
)

DAY = "2025-01-15"
# 13:00 IST
NOON = datetime(2025, 1, 15, 7, 30, tzinfo=timezone.utc)


def add_aggregator(db, total, aggregator="zomato", status="delivered", tenant_id="tenant-1",
                   created_at=NOON, items_json="[]"):
    with db.session() as s:
        oid = str(uuid.uuid4())
        s.add(AggregatorOrder(
            tenant_id=tenant_id, order_id=oid, order_number=f"A-{oid[:6]}", aggregator=aggregator,
            aggregator_order_id=oid, status=status, total=total, tax=total * 0.05,
            items_json=items_json, created_at=created_at,
        ))
        s.commit()


def two_pos_sales(ledger):
    ledger.record(make_sale("INV-2501-000001", completed_at=NOON, grand_total=200, subtotal=200,
                            cgst=0, sgst=0, service_charge=0))
    ledger.record(make_sale("INV-2501-000002", completed_at=NOON, grand_total=300, subtotal=280,
                            cgst=0, sgst=0, service_charge=20, payment_method="upi", order_type="takeout"))


def test_combined_summary(reporter, ledger, db, tenant_id):
    two_pos_sales(ledger)
    add_aggregator(db, 300)
    add_aggregator(db, 120, status="cancelled")  # not fulfilled, ignored

    out = reporter.combined_summary(tenant_id, DAY)
    assert out.summary.total_sales == 800
    assert out.summary.total_orders == 3
    assert out.summary.average_order_value == pytest.approx(800 / 3)
    assert out.summary.total_service_charge == 20
    assert (out.source_breakdown.pos.orders, out.source_breakdown.pos.sales) == (2, 500)
    assert (out.source_breakdown.zomato.orders, out.source_breakdown.zomato.sales) == (1, 300)
    assert out.source_breakdown.swiggy.orders == 0


def test_empty_day_has_no_division_error(reporter, tenant_id):
    out = reporter.combined_summary(tenant_id, DAY)
    assert out.summary.total_orders == 0
    assert out.summary.average_order_value == 0
    assert reporter.sales_summary(tenant_id, DAY).average_order_value == 0


def test_breakdowns(reporter, ledger, tenant_id):
    two_pos_sales(ledger)
    pay = reporter.payment_breakdown(tenant_id, DAY)
    assert pay == {"cash": 200, "card": 0, "upi": 300, "wallet": 0, "pending": 0}

    types = reporter.order_type_breakdown(tenant_id, DAY)
    assert types["takeout"].count == 1
    assert types["dine-in"].sales == 200
    assert types["delivery"].count == 0

    hours = reporter.hourly_sales(tenant_id, DAY)
    assert len(hours) == 24
    assert hours[13].orders == 2  # local hour, not UTC
    assert sum(h.orders for h in hours) == 2


def test_late_sale_stays_on_its_local_day(reporter, ledger, tenant_id):
    late = datetime(2025, 1, 15, 18, 29, 59, 900000, tzinfo=timezone.utc)
    ledger.record(make_sale("INV-2501-000001", completed_at=late))
    assert reporter.sales_summary(tenant_id, "2025-01-15").total_orders == 1
    assert reporter.sales_summary(tenant_id, "2025-01-16").total_orders == 0
    assert reporter.sales_summary(tenant_id, "2025-01-14", "2025-01-16").total_orders == 1


def test_top_items_across_channels(reporter, ledger, db, tenant_id):
    two_pos_sales(ledger)
    add_aggregator(db, 300, aggregator="swiggy", items_json=(
        '[{"itemName": "Paneer Tikka", "unitPrice": 120, "quantity": 3},'
        ' {"name": "Lassi", "price": 60}, {}]'
    ))
    pos_only = reporter.top_items(tenant_id, DAY)
    assert [(i.name, i.quantity) for i in pos_only] == [("Paneer Tikka", 4)]

    top = reporter.combined_top_items(tenant_id, DAY, limit=2)
    assert [(i.name, i.quantity, i.revenue) for i in top] == [
        ("Paneer Tikka", 7, 560),
        ("Lassi", 1, 60),
    ]


def test_malformed_items_are_skipped(reporter, ledger, db, tenant_id, caplog):
    two_pos_sales(ledger)
    with db.session() as s:
        s.query(SalesTransaction).filter(SalesTransaction.invoice_number == "INV-2501-000001") \
            .update({SalesTransaction.items_json: "{not json"})
        s.commit()
    add_aggregator(db, 300, items_json='[{"name": "Biryani", "quantity": "lots"}, "junk"]')

    with caplog.at_level("WARNING"):
        top = reporter.combined_top_items(tenant_id, DAY)
        summary = reporter.combined_summary(tenant_id, DAY)

    assert [i.name for i in top] == ["Paneer Tikka"]
    assert summary.summary.total_orders == 3
    assert "Unparseable items blob" in caplog.text


def test_aggregator_channel_rules(reporter, db, tenant_id):
    add_aggregator(db, 100, aggregator="direct")
    add_aggregator(db, 50, tenant_id=None)          # single-tenant install
    add_aggregator(db, 70, tenant_id="tenant-2")    # someone else's
    add_aggregator(db, 90, status="preparing")

    orders = reporter.aggregator_transactions(tenant_id, DAY)
    assert sorted(o.total for o in orders) == [50, 100]
    assert {o.source for o in orders} == {"website", "zomato"}

    combined = reporter.combined_summary(tenant_id, DAY)
    assert combined.source_breakdown.website.sales == 100
    assert reporter.aggregator_summary(tenant_id, DAY).total_orders == 2


def test_all_transactions_is_a_tagged_union(reporter, ledger, db, tenant_id):
    two_pos_sales(ledger)
    add_aggregator(db, 300, created_at=datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc))
    records = reporter.all_transactions(tenant_id, DAY)
    assert [r.kind for r in records] == ["aggregator", "pos", "pos"]
    assert isinstance(records[1], PosSale)

    hours = reporter.combined_hourly_sales(tenant_id, DAY)
    assert hours[15].orders == 1 and hours[13].orders == 2


def test_normalize_aggregator_item_defaults():
    item = normalize_aggregator_item(AggregatorItem())
    assert (item.name, item.quantity, item.revenue) == ("Unknown Item", 1, 0)
    item = normalize_aggregator_item(AggregatorItem.model_validate({"itemName": "Naan", "unitPrice": 40}))
    assert (item.name, item.quantity, item.revenue) == ("Naan", 1, 40)


def test_combine_keeps_per_source_numbers():
    pos = summarize([PosSale(sale=make_sale("INV-1", grand_total=250, subtotal=250, cgst=0, sgst=0)),
                     PosSale(sale=make_sale("INV-2", grand_total=250, subtotal=250, cgst=0, sgst=0))])
    agg = summarize_aggregators([AggregatorSale(id="a", order_number="S-1", aggregator="swiggy",
                                                status="delivered", total=300, created_at=NOON)])
    out = combine(pos, agg)
    assert out.summary.total_sales == 800
    assert out.pos.total_sales == 500
    assert out.source_breakdown.swiggy.sales == 300
