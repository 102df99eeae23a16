# test_tax.py
import pytest

from posledger.exceptions import TaxValidationError
from posledger.services.billing import PackingConfig, calculate_packing_charges, compute_bill
from posledger.services.tax import TaxConfig, compute_taxes


def ledger_sum(b):
    return (b.subtotal + b.service_charge + b.cgst + b.sgst
            + getattr(b, "packing_charges", 0) - getattr(b, "discount", 0) + b.round_off)


def test_same_input_same_breakdown():
    cfg = TaxConfig()
    first = compute_taxes(1000, cfg)
    for _ in range(5):
        assert compute_taxes(1000, cfg).model_dump() == first.model_dump()
    assert first.cgst == 25.0
    assert first.sgst == 25.0
    assert first.grand_total == 1050
    assert first.round_off == 0


def test_round_off_absorbs_fractional_total():
    t = compute_taxes(999.30, TaxConfig())
    # 24.9825 each, printed to the paisa
    assert t.cgst == 24.98
    assert t.sgst == 24.98
    assert t.grand_total == 1049
    assert t.round_off == pytest.approx(-0.26, abs=1e-9)
    assert t.round_off == pytest.approx(-0.265, abs=0.005 + 1e-9)
    assert ledger_sum(t) == pytest.approx(t.grand_total, abs=1e-9)


def test_without_round_off_total_is_to_the_paisa():
    t = compute_taxes(999.30, TaxConfig(round_off_enabled=False))
    assert t.grand_total == 1049.26
    assert t.round_off == 0
    assert ledger_sum(t) == pytest.approx(t.grand_total, abs=1e-9)


def test_service_charge_is_taxed():
    t = compute_taxes(1000, TaxConfig(service_charge_enabled=True, service_charge_rate=10))
    assert t.service_charge == 100
    assert t.cgst == 27.5
    assert t.sgst == 27.5
    assert t.grand_total == 1155


def test_tax_disabled_zeroes_gst():
    t = compute_taxes(480, TaxConfig(tax_enabled=False))
    assert t.cgst == 0 and t.sgst == 0
    assert t.grand_total == 480


def test_tax_included_backs_out_base():
    t = compute_taxes(1050, TaxConfig(tax_included_in_price=True))
    assert t.tax_included
    assert t.base_amount == pytest.approx(1000)
    assert t.cgst == pytest.approx(25)
    assert t.grand_total == 1050


def test_tax_included_parts_are_to_the_paisa():
    t = compute_taxes(999.30, TaxConfig(tax_included_in_price=True))
    # 999.30 / 1.05 = 951.714..., 2.5% of that is 23.7928...
    assert t.cgst == 23.79
    assert t.sgst == 23.79
    assert t.base_amount == pytest.approx(951.72)
    assert t.grand_total == 999
    assert t.base_amount + t.cgst + t.sgst + t.round_off == pytest.approx(t.grand_total, abs=1e-9)


@pytest.mark.parametrize("subtotal", [-1, None, float("nan")])
def test_bad_subtotal_rejected(subtotal):
    with pytest.raises(TaxValidationError):
        compute_taxes(subtotal, TaxConfig())


def test_summary_label():
    assert TaxConfig().summary() == "GST 5%"
    assert TaxConfig(tax_enabled=False).summary() == "No GST"
    assert TaxConfig(service_charge_enabled=True, service_charge_rate=10).summary() == "GST 5% + SC 10%"


# ===== bill composition =====
def test_bill_rerounds_after_packing_and_discount():
    b = compute_bill(999.30, TaxConfig(), discount=20, packing_charges=10.4)
    # 1049.26 + 10.4 - 20 = 1039.66
    assert b.grand_total == 1040
    assert b.round_off == pytest.approx(0.34, abs=1e-9)
    assert ledger_sum(b) == pytest.approx(b.grand_total, abs=1e-9)


def test_bill_with_included_tax_stores_net_subtotal():
    b = compute_bill(1050, TaxConfig(tax_included_in_price=True))
    assert b.menu_subtotal == 1050
    assert b.subtotal == pytest.approx(1000)
    assert ledger_sum(b) == pytest.approx(b.grand_total, abs=1e-9)


def test_discount_larger_than_bill_rejected():
    with pytest.raises(TaxValidationError):
        compute_bill(100, TaxConfig(), discount=500)


def test_packing_only_for_takeout():
    cfg = PackingConfig(enabled=True, default_charge=5, charges_by_category={"Beverages": 2})
    items = [
        {"name": "Biryani", "category": "Main Course", "quantity": 2},
        {"name": "Lassi", "category": "beverages", "quantity": 1},
    ]
    takeout = calculate_packing_charges(items, "takeout", cfg)
    assert takeout.total_charge == 12
    assert [l.charge_per_item for l in takeout.items] == [5, 2]

    assert calculate_packing_charges(items, "dine-in", cfg).total_charge == 0
    assert calculate_packing_charges(items, "takeout", PackingConfig()).total_charge == 0
