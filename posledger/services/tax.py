"""
Tax engine: service charge, CGST/SGST and round-off for a bill subtotal.

Pure and deterministic. All arithmetic runs on Decimal built from the
string form of the inputs, so the same subtotal and configuration always
produce the same floats. Service charge, CGST and SGST are rounded to the
paisa first and the round-off is taken against their sum, which keeps

    grand_total == subtotal + service_charge + cgst + sgst - discount
                   + packing_charges + round_off

exact for whatever is later written to the ledger.
"""
from decimal import Decimal, ROUND_HALF_UP

from pydantic import BaseModel, Field

from posledger.exceptions import TaxValidationError

CENT = Decimal("0.01")
UNIT = Decimal("1")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def _d(x) -> Decimal:
    # go through str() so 999.3 stays 999.3 and not its binary expansion
    return x if isinstance(x, Decimal) else Decimal(str(x or 0))

def _paise(x) -> Decimal:
    return _d(x).quantize(CENT, rounding=ROUND_HALF_UP)

def _money(x) -> float:
    return float(_paise(x))


class TaxConfig(BaseModel):
    tax_enabled: bool = True
    cgst_rate: float = Field(default=2.5, ge=0)
    sgst_rate: float = Field(default=2.5, ge=0)
    service_charge_enabled: bool = False
    service_charge_rate: float = Field(default=0, ge=0)
    round_off_enabled: bool = True
    tax_included_in_price: bool = False

    @classmethod
    def from_settings(cls, rs) -> "TaxConfig":
        if rs is None:
            return cls()
        return cls(
            tax_enabled=bool(rs.tax_enabled),
            cgst_rate=float(rs.cgst_rate or 0),
            sgst_rate=float(rs.sgst_rate or 0),
            service_charge_enabled=bool(rs.service_charge_enabled),
            service_charge_rate=float(rs.service_charge_rate or 0),
            round_off_enabled=bool(rs.round_off_enabled),
            tax_included_in_price=bool(rs.tax_included_in_price),
        )

    def summary(self) -> str:
        label = f"GST {self.cgst_rate + self.sgst_rate:g}%" if self.tax_enabled else "No GST"
        if self.service_charge_enabled and self.service_charge_rate > 0:
            label += f" + SC {self.service_charge_rate:g}%"
        return label


class TaxBreakdown(BaseModel):
    subtotal: float
    base_amount: float
    service_charge: float
    cgst: float
    sgst: float
    round_off: float
    grand_total: float
    tax_included: bool = False

    @property
    def total_tax(self) -> float:
        return float(_d(self.cgst) + _d(self.sgst))


def _validate(subtotal, config: TaxConfig) -> Decimal:
    if subtotal is None:
        raise TaxValidationError("subtotal is required")
    sub = _d(subtotal)
    if not sub.is_finite() or sub < ZERO:
        raise TaxValidationError(f"subtotal must be a non-negative amount, got {subtotal!r}")
    for name in ("cgst_rate", "sgst_rate", "service_charge_rate"):
        if _d(getattr(config, name)) < ZERO:
            raise TaxValidationError(f"{name} must not be negative")
    return sub


def tax_parts(subtotal, config: TaxConfig) -> dict[str, Decimal]:
    """Components to the paisa. `pre_round` is their sum, what round-off applies to."""
    sub = _validate(subtotal, config)
    cgst_rate = _d(config.cgst_rate) if config.tax_enabled else ZERO
    sgst_rate = _d(config.sgst_rate) if config.tax_enabled else ZERO
    sc_rate = _d(config.service_charge_rate) if config.service_charge_enabled else ZERO
    included = config.tax_enabled and config.tax_included_in_price

    if included:
        # menu prices already carry GST: back out the base, report tax on it
        gross_base = sub / (1 + (cgst_rate + sgst_rate) / HUNDRED)
        service = _paise(gross_base * sc_rate / HUNDRED)
        cgst = _paise(gross_base * cgst_rate / HUNDRED)
        sgst = _paise(gross_base * sgst_rate / HUNDRED)
        # net base is whatever the printed GST leaves of the menu price
        base = sub - cgst - sgst
        pre_round = sub + service
    else:
        base = sub
        service = _paise(sub * sc_rate / HUNDRED)
        taxable = sub + service
        cgst = _paise(taxable * cgst_rate / HUNDRED)
        sgst = _paise(taxable * sgst_rate / HUNDRED)
        pre_round = sub + service + cgst + sgst

    return {
        "subtotal": sub, "base": base, "service": service,
        "cgst": cgst, "sgst": sgst, "pre_round": pre_round,
        "included": Decimal(int(included)),
    }


def round_total(pre_round: Decimal, round_off_enabled: bool) -> tuple[Decimal, Decimal]:
    """
    (grand_total, round_off): whole units when enabled, else to the paisa.
    With round-off disabled and paisa inputs the round-off is zero.
    """
    step = UNIT if round_off_enabled else CENT
    grand = pre_round.quantize(step, rounding=ROUND_HALF_UP)
    return grand, grand - pre_round


def compute_taxes(subtotal, config: TaxConfig) -> TaxBreakdown:
    p = tax_parts(subtotal, config)
    grand, round_off = round_total(p["pre_round"], config.round_off_enabled)
    return TaxBreakdown(
        subtotal=float(p["subtotal"]),
        base_amount=float(p["base"]),
        service_charge=float(p["service"]),
        cgst=float(p["cgst"]),
        sgst=float(p["sgst"]),
        round_off=float(round_off),
        grand_total=float(grand),
        tax_included=bool(p["included"]),
    )
