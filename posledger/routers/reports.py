from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from posledger.deps import get_device, require_auth
from posledger.services.reporting import PosSale
from posledger.util.dates import local_today

router = APIRouter(prefix="/reports", tags=["reports"])


def _tenant(device) -> str:
    if not device.tenant_id:
        raise HTTPException(409, "Device has no tenant configured")
    return device.tenant_id


def _day(device, day: date | None) -> date:
    return day or local_today(device.cfg.TZ)


@router.get("/summary")
def summary(day: date | None = None, end_day: date | None = None,
            device=Depends(get_device), sub: str = Depends(require_auth)):
    return device.reporter.sales_summary(_tenant(device), _day(device, day), end_day).model_dump(by_alias=True)


@router.get("/payments")
def payments(day: date | None = None, end_day: date | None = None,
             device=Depends(get_device), sub: str = Depends(require_auth)):
    return device.reporter.payment_breakdown(_tenant(device), _day(device, day), end_day)


@router.get("/order-types")
def order_types(day: date | None = None, end_day: date | None = None,
                device=Depends(get_device), sub: str = Depends(require_auth)):
    out = device.reporter.order_type_breakdown(_tenant(device), _day(device, day), end_day)
    return {k: v.model_dump() for k, v in out.items()}


@router.get("/hourly")
def hourly(day: date | None = None, end_day: date | None = None, combined: bool = False,
           device=Depends(get_device), sub: str = Depends(require_auth)):
    fn = device.reporter.combined_hourly_sales if combined else device.reporter.hourly_sales
    return [h.model_dump() for h in fn(_tenant(device), _day(device, day), end_day)]


@router.get("/items")
def items(day: date | None = None, end_day: date | None = None, limit: int = 10, combined: bool = False,
          device=Depends(get_device), sub: str = Depends(require_auth)):
    fn = device.reporter.combined_top_items if combined else device.reporter.top_items
    return [i.model_dump() for i in fn(_tenant(device), _day(device, day), end_day, limit=max(limit, 0))]


@router.get("/aggregator")
def aggregator(day: date | None = None, end_day: date | None = None,
               device=Depends(get_device), sub: str = Depends(require_auth)):
    return device.reporter.aggregator_summary(_tenant(device), _day(device, day), end_day).model_dump(by_alias=True)


@router.get("/combined")
def combined(day: date | None = None, end_day: date | None = None,
             device=Depends(get_device), sub: str = Depends(require_auth)):
    return device.reporter.combined_summary(_tenant(device), _day(device, day), end_day).model_dump(by_alias=True)


@router.get("/transactions")
def transactions(day: date | None = None, end_day: date | None = None,
                 device=Depends(get_device), sub: str = Depends(require_auth)):
    out = []
    for r in device.reporter.all_transactions(_tenant(device), _day(device, day), end_day):
        if isinstance(r, PosSale):
            out.append({"kind": r.kind, "sale": r.sale.model_dump(mode="json", by_alias=True)})
        else:
            out.append(r.model_dump(mode="json"))
    return out
