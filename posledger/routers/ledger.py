from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from posledger.deps import get_device, require_auth
from posledger.exceptions import LedgerWriteError, PaymentMethodLocked, SaleNotFound, TaxValidationError
from posledger.models.core import OrderType
from posledger.schemas.orders import CompleteSaleIn, OrderIn, PaymentMethodIn
from posledger.services.ledger import LedgerQuery

router = APIRouter(prefix="/sales", tags=["sales"])


def _tenant(device) -> str:
    if not device.tenant_id:
        raise HTTPException(409, "Device has no tenant configured")
    return device.tenant_id


@router.post("/preview")
def preview(body: OrderIn, device=Depends(get_device), sub: str = Depends(require_auth)):
    try:
        bill = device.checkout.preview_bill(_tenant(device), body)
    except TaxValidationError as e:
        raise HTTPException(400, str(e))
    return {**bill.model_dump(), "invoice_number": device.allocator.next_invoice_number(_tenant(device))}


@router.post("")
def complete(body: CompleteSaleIn,
             device=Depends(get_device), sub: str = Depends(require_auth)):
    try:
        sale = device.checkout.complete_sale(_tenant(device), body, body.payment_method,
                                              cashier_name=body.cashier_name, staff_id=body.staff_id)
    except TaxValidationError as e:
        raise HTTPException(400, str(e))
    except LedgerWriteError as e:
        raise HTTPException(500, str(e))
    return sale.model_dump(mode="json", by_alias=True)


@router.get("")
def list_sales(day: date | None = None, start_day: date | None = None, end_day: date | None = None,
               q: str | None = None, order_type: OrderType | None = None, limit: int | None = None,
               device=Depends(get_device), sub: str = Depends(require_auth)):
    filters = LedgerQuery(tenant_id=_tenant(device), day=day, start_day=start_day, end_day=end_day,
                          search=q, order_type=order_type, limit=limit)
    return [s.model_dump(mode="json", by_alias=True) for s in device.ledger.query(filters)]


@router.get("/recent-dine-in")
def recent_dine_in(limit: int = 20, device=Depends(get_device), sub: str = Depends(require_auth)):
    return [s.model_dump(mode="json", by_alias=True) for s in device.ledger.recent_dine_in(_tenant(device), limit)]


@router.get("/{invoice_number}")
def get_sale(invoice_number: str, device=Depends(get_device), sub: str = Depends(require_auth)):
    sale = device.ledger.get_by_invoice(invoice_number, _tenant(device))
    if not sale:
        raise HTTPException(404, "Sale not found")
    return sale.model_dump(mode="json", by_alias=True)


@router.patch("/{invoice_number}/payment-method")
def set_payment_method(invoice_number: str, body: PaymentMethodIn,
                       device=Depends(get_device), sub: str = Depends(require_auth)):
    try:
        sale = device.ledger.update_payment_method(invoice_number, body.payment_method, _tenant(device))
    except SaleNotFound:
        raise HTTPException(404, "Sale not found")
    except PaymentMethodLocked as e:
        raise HTTPException(409, str(e))
    return sale.model_dump(mode="json", by_alias=True)
