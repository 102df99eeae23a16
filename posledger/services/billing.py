from decimal import Decimal

from pydantic import BaseModel, Field

from posledger.exceptions import TaxValidationError
from posledger.models.core import OrderType
from posledger.services.tax import TaxConfig, ZERO, _d, _money, round_total, tax_parts


class PackingConfig(BaseModel):
    enabled: bool = False
    default_charge: float = Field(default=5, ge=0)
    charges_by_category: dict[str, float] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, rs) -> "PackingConfig":
        if rs is None:
            return cls()
        return cls(
            enabled=bool(rs.packing_enabled),
            default_charge=float(rs.packing_default_charge or 0),
            charges_by_category=dict(rs.packing_charges_by_category or {}),
        )


class PackingLine(BaseModel):
    name: str
    category: str | None = None
    quantity: float
    charge_per_item: float
    total_charge: float


class PackingCharges(BaseModel):
    items: list[PackingLine] = Field(default_factory=list)
    total_charge: float = 0.0


class Bill(BaseModel):
    """Everything the ledger stores about the money side of one sale."""
    subtotal: float
    service_charge: float
    cgst: float
    sgst: float
    discount: float
    packing_charges: float
    round_off: float
    grand_total: float
    tax_included: bool = False
    menu_subtotal: float  # as rung up, before backing out included tax

    @property
    def total_tax(self) -> float:
        return float(_d(self.cgst) + _d(self.sgst))


def calculate_packing_charges(items: list[dict], order_type: str, config: PackingConfig) -> PackingCharges:
    """
    Per-item packing charge for takeout orders.
    items: [{name, category, quantity}]; category match is case-insensitive.
    """
    if not config.enabled or order_type != OrderType.TAKEOUT.value:
        return PackingCharges()

    by_cat = {k.lower(): v for k, v in (config.charges_by_category or {}).items()}
    lines: list[PackingLine] = []
    total = ZERO
    for it in items:
        category = it.get("category") or ""
        per_item = _d(by_cat.get(category.lower(), config.default_charge))
        if per_item <= 0:
            continue
        qty = _d(it.get("quantity") or 1)
        line_total = per_item * qty
        lines.append(PackingLine(
            name=it.get("name") or "Unknown",
            category=category or None,
            quantity=float(qty),
            charge_per_item=float(per_item),
            total_charge=_money(line_total),
        ))
        total += line_total
    return PackingCharges(items=lines, total_charge=_money(total))


def compute_bill(subtotal, config: TaxConfig, discount=0, packing_charges=0) -> Bill:
    """
    Compose the final bill: taxes from the engine, then packing charges added and
    discount taken off, then a single round-off over the composed total.
    """
    p = tax_parts(subtotal, config)
    disc = _d(discount)
    packing = _d(packing_charges)
    if disc < ZERO or packing < ZERO:
        raise TaxValidationError("discount and packing charges must not be negative")

    pre_round = p["pre_round"] + packing - disc
    if pre_round < ZERO:
        raise TaxValidationError(f"discount {discount} exceeds the bill total")
    grand, round_off = round_total(pre_round, config.round_off_enabled)

    included = bool(p["included"])
    # with tax-inclusive prices the ledger subtotal is the net base, so the parts still add up
    ledger_subtotal: Decimal = p["base"] if included else p["subtotal"]
    return Bill(
        subtotal=float(ledger_subtotal),
        service_charge=float(p["service"]),
        cgst=float(p["cgst"]),
        sgst=float(p["sgst"]),
        discount=float(disc),
        packing_charges=float(packing),
        round_off=float(round_off),
        grand_total=float(grand),
        tax_included=included,
        menu_subtotal=float(p["subtotal"]),
    )
