import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from posledger.db import get_db
from posledger.deps import require_tenant
from posledger.models.cloud import CloudAggregatorOrder, CloudSalesTransaction
from posledger.models.core import FULFILLED_AGGREGATOR_STATUSES
from posledger.schemas.sales import SaleRecord
from posledger.services.aggregator import AggregatorSale
from posledger.services.cloud_ingest import ingest_batch
from posledger.services.reporting import (
    breakdown, combine, pos_records, summarize, summarize_aggregators, top_items,
)
from posledger.util.dates import local_day_bounds, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sales", tags=["sales"])


def _range(date_from: date | None, date_to: date | None):
    # cloud reports are in UTC days
    first = date_from or utcnow().date()
    return local_day_bounds(first, date_to or first, "UTC")


def _pos(db: Session, tenant_id: str, start, end):
    rows = (
        db.query(CloudSalesTransaction)
        .filter(CloudSalesTransaction.tenant_id == tenant_id,
                CloudSalesTransaction.completed_at >= start,
                CloudSalesTransaction.completed_at < end)
        .order_by(CloudSalesTransaction.completed_at.desc())
        .all()
    )
    return pos_records(SaleRecord.from_row(r) for r in rows)


def _aggregator(db: Session, tenant_id: str, start, end) -> list[AggregatorSale]:
    rows = (
        db.query(CloudAggregatorOrder)
        .filter(CloudAggregatorOrder.tenant_id == tenant_id,
                CloudAggregatorOrder.status.in_(FULFILLED_AGGREGATOR_STATUSES),
                CloudAggregatorOrder.created_at >= start,
                CloudAggregatorOrder.created_at < end)
        .all()
    )
    out = []
    for r in rows:
        try:
            out.append(AggregatorSale.from_row(r))
        except ValueError as e:
            logger.warning("Skipping aggregator order %s for %s: %s", r.order_number, tenant_id, e)
    return out


@router.post("/{tenant_id}/sync")
def sync_sales(tenant_id: str, body: Any = Body(default=None), db: Session = Depends(get_db),
               _: str = Depends(require_tenant)):
    transactions = body.get("transactions") if isinstance(body, dict) else None
    if not isinstance(transactions, list):
        return JSONResponse({"success": False, "error": "Missing transactions array"}, status_code=400)
    resp = ingest_batch(db, tenant_id, transactions)
    return resp.model_dump(by_alias=True)


@router.get("/{tenant_id}/summary")
def sales_summary(tenant_id: str, date_from: date | None = Query(None, alias="from"),
                  date_to: date | None = Query(None, alias="to"),
                  db: Session = Depends(get_db), _: str = Depends(require_tenant)):
    start, end = _range(date_from, date_to)
    summary = summarize(_pos(db, tenant_id, start, end), with_sources=True)
    return {"success": True, "summary": summary.model_dump(by_alias=True)}


@router.get("/{tenant_id}/breakdown")
def sales_breakdown(tenant_id: str, date_from: date | None = Query(None, alias="from"),
                  date_to: date | None = Query(None, alias="to"),
                    db: Session = Depends(get_db), _: str = Depends(require_tenant)):
    start, end = _range(date_from, date_to)
    out = breakdown(_pos(db, tenant_id, start, end), "UTC")
    return {"success": True, "breakdown": out.model_dump(by_alias=True)}


@router.get("/{tenant_id}/items")
def sales_items(tenant_id: str, date_from: date | None = Query(None, alias="from"),
                  date_to: date | None = Query(None, alias="to"), limit: int = 10,
                db: Session = Depends(get_db), _: str = Depends(require_tenant)):
    start, end = _range(date_from, date_to)
    items = top_items(_pos(db, tenant_id, start, end), max(limit, 0))
    return {"success": True, "items": [i.model_dump(by_alias=True) for i in items]}


@router.get("/{tenant_id}/combined")
def sales_combined(tenant_id: str, date_from: date | None = Query(None, alias="from"),
                  date_to: date | None = Query(None, alias="to"),
                   db: Session = Depends(get_db), _: str = Depends(require_tenant)):
    start, end = _range(date_from, date_to)
    pos = summarize(_pos(db, tenant_id, start, end), with_sources=True)
    agg = summarize_aggregators(_aggregator(db, tenant_id, start, end))
    combined = combine(pos, agg)
    return {"success": True, **combined.model_dump(by_alias=True)}
