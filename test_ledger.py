# test_ledger.py
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_sale
from posledger.exceptions import PaymentMethodLocked, PosLedgerError, SaleNotFound
from posledger.services.ledger import LedgerQuery
from posledger.util.dates import local_day_bounds


def test_record_is_idempotent_on_invoice(ledger, tenant_id):
    first = ledger.record(make_sale("INV-2501-000001", payment_method="cash"))
    again = ledger.record(make_sale("INV-2501-000001", payment_method="card"))

    assert again.id == first.id
    assert again.payment_method.value == "cash"
    assert ledger.sync_stats(tenant_id).total == 1
    assert ledger.exists("INV-2501-000001", tenant_id)
    assert not ledger.exists("INV-2501-000002", tenant_id)


def test_same_invoice_for_other_tenant_is_separate(ledger):
    ledger.record(make_sale("INV-2501-000001"))
    ledger.record(make_sale("INV-2501-000001", tenant_id="tenant-2"))
    assert ledger.sync_stats("tenant-2").total == 1
    with pytest.raises(PosLedgerError):
        # ambiguous without a tenant
        ledger.update_payment_method("INV-2501-000001", "upi")


def test_items_round_trip_as_opaque_blob(ledger, tenant_id):
    ledger.record(make_sale("INV-2501-000001"))
    sale = ledger.get_by_invoice("INV-2501-000001", tenant_id)
    assert sale.items[0].name == "Paneer Tikka"
    assert sale.items[0].quantity == 2
    assert sale.completed_at.tzinfo is not None


def test_payment_method_can_be_changed_once(ledger, tenant_id):
    ledger.record(make_sale("INV-2501-000001", payment_method="pending", payment_status="pending"))

    updated = ledger.update_payment_method("INV-2501-000001", "upi", tenant_id)
    assert updated.payment_method.value == "upi"
    assert updated.payment_status.value == "completed"
    assert updated.payment_method_updated_at is not None

    with pytest.raises(PaymentMethodLocked):
        ledger.update_payment_method("INV-2501-000001", "cash", tenant_id)
    assert ledger.get_by_invoice("INV-2501-000001", tenant_id).payment_method.value == "upi"


def test_payment_method_unknown_invoice(ledger, tenant_id):
    with pytest.raises(SaleNotFound):
        ledger.update_payment_method("INV-2501-999999", "cash", tenant_id)


def test_mark_synced_keeps_first_stamp(ledger, tenant_id):
    a = ledger.record(make_sale("INV-2501-000001"))
    b = ledger.record(make_sale("INV-2501-000002"))
    first = datetime(2025, 1, 15, 7, 0, tzinfo=timezone.utc)

    assert ledger.mark_synced([a.id], at=first) == 1
    assert ledger.mark_synced([a.id, b.id], at=first + timedelta(hours=1)) == 1
    assert ledger.get_by_invoice("INV-2501-000001", tenant_id).synced_at == first
    assert ledger.mark_synced([]) == 0

    stats = ledger.sync_stats(tenant_id)
    assert (stats.total, stats.synced, stats.unsynced) == (2, 2, 0)


def test_unsynced_oldest_first(ledger, tenant_id):
    base = datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)
    for i in (3, 1, 2):
        ledger.record(make_sale(f"INV-2501-00000{i}", completed_at=base + timedelta(minutes=i)))
    pending = ledger.unsynced(tenant_id, limit=2)
    assert [s.invoice_number for s in pending] == ["INV-2501-000001", "INV-2501-000002"]


def test_purge_only_drops_synced_rows(ledger, tenant_id):
    old = datetime(2024, 1, 1, tzinfo=timezone.utc)
    synced = ledger.record(make_sale("INV-2401-000001", completed_at=old))
    ledger.record(make_sale("INV-2401-000002", completed_at=old))
    ledger.mark_synced([synced.id])

    assert ledger.purge_synced(datetime(2024, 6, 1, tzinfo=timezone.utc)) == 1
    assert not ledger.exists("INV-2401-000001", tenant_id)
    assert ledger.exists("INV-2401-000002", tenant_id)


def test_local_day_boundary(ledger, tenant_id):
    # 23:59:59.900 in Kolkata on Jan 15 is 18:29:59.900 UTC
    late = datetime(2025, 1, 15, 18, 29, 59, 900000, tzinfo=timezone.utc)
    ledger.record(make_sale("INV-2501-000001", completed_at=late))

    assert [s.invoice_number for s in ledger.sales_by_date(tenant_id, "2025-01-15")] == ["INV-2501-000001"]
    assert ledger.sales_by_date(tenant_id, "2025-01-16") == []

    start, end = local_day_bounds("2025-01-15", tz="Asia/Kolkata")
    assert start == datetime(2025, 1, 14, 18, 30, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 15, 18, 30, tzinfo=timezone.utc)


def test_sub_millisecond_sale_before_midnight(ledger, tenant_id):
    # local 2025-01-15 23:59:59.999500, later than any .999 millisecond cut-off
    late = datetime(2025, 1, 15, 18, 29, 59, 999500, tzinfo=timezone.utc)
    ledger.record(make_sale("INV-2501-000001", completed_at=late))
    on_day = ledger.sales_by_date(tenant_id, "2025-01-15")
    next_day = ledger.sales_by_date(tenant_id, "2025-01-16")
    assert [s.invoice_number for s in on_day] == ["INV-2501-000001"]
    assert next_day == []

    midnight = datetime(2025, 1, 15, 18, 30, tzinfo=timezone.utc)
    ledger.record(make_sale("INV-2501-000002", completed_at=midnight))
    assert [s.invoice_number for s in ledger.sales_by_date(tenant_id, "2025-01-16")] == ["INV-2501-000002"]


def test_range_and_search(ledger, tenant_id):
    day1 = datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)
    ledger.record(make_sale("INV-2501-000001", completed_at=day1, table_number=4))
    ledger.record(make_sale("INV-2501-000002", completed_at=day1 + timedelta(days=1), table_number=12))
    ledger.record(make_sale("INV-2501-000003", completed_at=day1 + timedelta(days=1),
                            order_type="takeout", table_number=None))

    rng = ledger.sales_for_range(tenant_id, "2025-01-15", "2025-01-16")
    assert {s.invoice_number for s in rng} == {"INV-2501-000001", "INV-2501-000002", "INV-2501-000003"}
    assert rng[-1].invoice_number == "INV-2501-000001"

    assert [s.invoice_number for s in ledger.search(tenant_id, "12")] == ["INV-2501-000002"]
    assert [s.invoice_number for s in ledger.search(tenant_id, "000003")] == ["INV-2501-000003"]

    takeout = ledger.query(LedgerQuery(tenant_id=tenant_id, search="INV", order_type="takeout"))
    assert [s.invoice_number for s in takeout] == ["INV-2501-000003"]

    dine_in = ledger.recent_dine_in(tenant_id, limit=1)
    assert [s.invoice_number for s in dine_in] == ["INV-2501-000002"]
