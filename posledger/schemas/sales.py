import json
import logging
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from posledger.models.core import OrderType, PaymentMethod, PaymentStatus, SaleSource
from posledger.schemas.common import CamelModel
from posledger.util.dates import as_utc

logger = logging.getLogger(__name__)

# grand total must reproduce from its parts to within one paisa
TOTAL_TOLERANCE = 0.01


class SaleItem(CamelModel):
    name: str = "Unknown"
    quantity: float = Field(default=1, gt=0)
    price: float = Field(default=0, ge=0)
    subtotal: float = Field(default=0, ge=0)
    modifiers: list[str] = Field(default_factory=list)


def load_items(raw: str | None, ref: str = "") -> list[SaleItem]:
    """Deserialize an items blob. Malformed blobs or entries are skipped with a warning."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable items blob on %s, skipping", ref or "sale")
        return []
    if not isinstance(data, list):
        logger.warning("Items blob on %s is not a list, skipping", ref or "sale")
        return []
    items: list[SaleItem] = []
    for entry in data:
        try:
            items.append(SaleItem.model_validate(entry))
        except ValueError:
            logger.warning("Skipping malformed item on %s: %r", ref or "sale", entry)
    return items


def dump_items(items: list[SaleItem]) -> str:
    return json.dumps([i.model_dump(mode="json") for i in items])


class SalePayload(CamelModel):
    """One completed sale as it travels on the sync wire."""
    id: str
    invoice_number: str = Field(min_length=1)
    order_number: Optional[str] = None
    order_type: OrderType
    table_number: Optional[int] = None
    source: SaleSource = SaleSource.POS
    subtotal: float = Field(ge=0)
    service_charge: float = Field(default=0, ge=0)
    cgst: float = Field(default=0, ge=0)
    sgst: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    round_off: float = 0
    packing_charges: float = Field(default=0, ge=0)
    grand_total: float = Field(ge=0)
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.COMPLETED
    items: list[SaleItem] = Field(default_factory=list)
    cashier_name: Optional[str] = None
    staff_id: Optional[str] = None
    created_at: datetime
    completed_at: datetime

    @field_validator("created_at", "completed_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def _check_total(self):
        expected = (self.subtotal + self.service_charge + self.cgst + self.sgst
                    + self.packing_charges - self.discount + self.round_off)
        if abs(expected - self.grand_total) > TOTAL_TOLERANCE:
            raise ValueError(
                f"grand total {self.grand_total} does not match its components ({expected:.3f})"
            )
        return self


class SaleRecord(SalePayload):
    """A ledger row: wire fields plus device-local state."""
    tenant_id: str
    synced_at: Optional[datetime] = None
    payment_method_updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "SaleRecord":
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            invoice_number=row.invoice_number,
            order_number=row.order_number,
            order_type=row.order_type,
            table_number=row.table_number,
            source=row.source,
            subtotal=row.subtotal,
            service_charge=row.service_charge,
            cgst=row.cgst,
            sgst=row.sgst,
            discount=row.discount,
            round_off=row.round_off,
            packing_charges=row.packing_charges or 0,
            grand_total=row.grand_total,
            payment_method=row.payment_method,
            payment_status=row.payment_status,
            items=load_items(row.items_json, row.invoice_number),
            cashier_name=row.cashier_name,
            staff_id=row.staff_id,
            created_at=row.created_at,
            completed_at=row.completed_at,
            synced_at=row.synced_at,
            payment_method_updated_at=getattr(row, "payment_method_updated_at", None),
        )

    def to_payload(self) -> dict:
        return self.model_dump(
            mode="json", by_alias=True,
            exclude={"tenant_id", "synced_at", "payment_method_updated_at"},
        )


class SyncResponse(CamelModel):
    success: bool = True
    synced: int = 0
    errors: list[str] = Field(default_factory=list)
    accepted_ids: Optional[list[str]] = None
