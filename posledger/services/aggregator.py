"""
Read side of the aggregator channel (Zomato / Swiggy / website orders).

The rows are written by the delivery-platform ingestion, not by this core.
Their item blobs come in several shapes (name|itemName, price|unitPrice), so
they are kept raw here and normalized only when reported on.
"""
import json
import logging
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import or_

from posledger.db import Database
from posledger.models.core import FULFILLED_AGGREGATOR_STATUSES, AggregatorOrder, SaleSource

logger = logging.getLogger(__name__)


class AggregatorItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")
    id: Optional[str] = None
    name: Optional[str] = None
    item_name: Optional[str] = Field(default=None, alias="itemName")
    price: Optional[float] = None
    unit_price: Optional[float] = Field(default=None, alias="unitPrice")
    quantity: Optional[float] = None


class AggregatorSale(BaseModel):
    kind: Literal["aggregator"] = "aggregator"
    id: str
    order_number: str
    aggregator: str
    status: str
    order_type: str = "delivery"
    customer_name: Optional[str] = None
    items: list[AggregatorItem] = Field(default_factory=list)
    subtotal: float = 0
    tax: float = 0
    discount: float = 0
    total: float = 0
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    created_at: datetime
    delivered_at: Optional[datetime] = None

    @property
    def source(self) -> str:
        # "direct" is what the website channel calls itself
        if self.aggregator in ("direct", SaleSource.WEBSITE.value):
            return SaleSource.WEBSITE.value
        return self.aggregator

    @classmethod
    def from_row(cls, row) -> "AggregatorSale":
        return cls(
            id=row.id,
            order_number=row.order_number,
            aggregator=(row.aggregator or "").lower(),
            status=row.status,
            order_type=getattr(row, "order_type", None) or "delivery",
            customer_name=getattr(row, "customer_name", None),
            items=load_aggregator_items(row.items_json, row.order_number),
            subtotal=row.subtotal or 0,
            tax=row.tax or 0,
            discount=row.discount or 0,
            total=row.total or 0,
            payment_method=row.payment_method,
            payment_status=row.payment_status,
            created_at=row.created_at,
            delivered_at=row.delivered_at,
        )


def load_aggregator_items(raw: str | None, ref: str = "") -> list[AggregatorItem]:
    try:
        data = json.loads(raw or "[]")
    except (TypeError, ValueError):
        logger.warning("Unparseable aggregator items on %s, skipping", ref or "order")
        return []
    if not isinstance(data, list):
        logger.warning("Aggregator items on %s are not a list, skipping", ref or "order")
        return []
    items = []
    for entry in data:
        if not isinstance(entry, dict):
            logger.warning("Skipping malformed aggregator item on %s: %r", ref or "order", entry)
            continue
        try:
            items.append(AggregatorItem.model_validate(entry))
        except ValueError:
            logger.warning("Skipping malformed aggregator item on %s: %r", ref or "order", entry)
    return items


class AggregatorChannel:
    def __init__(self, db: Database):
        self.db = db

    def fulfilled(self, start: datetime, end: datetime, tenant_id: str | None = None) -> list[AggregatorSale]:
        """Orders the kitchen has fulfilled, created within [start, end), newest first."""
        with self.db.session() as s:
            q = s.query(AggregatorOrder).filter(
                AggregatorOrder.status.in_(FULFILLED_AGGREGATOR_STATUSES),
                AggregatorOrder.created_at >= start,
                AggregatorOrder.created_at < end,
            )
            if tenant_id is not None:
                # rows from single-tenant installs carry no tenant id
                q = q.filter(or_(AggregatorOrder.tenant_id == tenant_id, AggregatorOrder.tenant_id.is_(None)))
            rows = q.order_by(AggregatorOrder.created_at.desc()).all()
            out = []
            for r in rows:
                try:
                    out.append(AggregatorSale.from_row(r))
                except ValueError as e:
                    logger.warning("Skipping aggregator order %s: %s", r.order_number, e)
            return out
