from sqlalchemy import String, Text, Integer, Float, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from posledger.db import Base
from posledger.models.common import UTCDateTime
from posledger.util.dates import utcnow

# ── Cloud side: rows merged from every device of a tenant ───────────────────
class CloudSalesTransaction(Base):
    __tablename__ = "cloud_sales_transactions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    invoice_number: Mapped[str] = mapped_column(String(60))
    order_number: Mapped[str | None] = mapped_column(String(60))
    order_type: Mapped[str] = mapped_column(String(20))
    table_number: Mapped[int | None] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(String(20), default="pos")
    subtotal: Mapped[float] = mapped_column(Float)
    service_charge: Mapped[float] = mapped_column(Float, default=0)
    cgst: Mapped[float] = mapped_column(Float, default=0)
    sgst: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    round_off: Mapped[float] = mapped_column(Float, default=0)
    packing_charges: Mapped[float] = mapped_column(Float, default=0)
    grand_total: Mapped[float] = mapped_column(Float)
    payment_method: Mapped[str] = mapped_column(String(20))
    payment_status: Mapped[str] = mapped_column(String(20), default="completed")
    items_json: Mapped[str] = mapped_column(Text)
    cashier_name: Mapped[str | None] = mapped_column(String(160))
    staff_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime)
    synced_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_cloud_sales_tenant_invoice"),
        Index("ix_cloud_sales_tenant_completed", "tenant_id", "completed_at"),
        Index("ix_cloud_sales_tenant_source", "tenant_id", "source"),
    )

class CloudAggregatorOrder(Base):
    __tablename__ = "cloud_aggregator_orders"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    order_number: Mapped[str] = mapped_column(String(60))
    aggregator: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(30))
    items_json: Mapped[str] = mapped_column(Text, default="[]")
    subtotal: Mapped[float] = mapped_column(Float, default=0)
    tax: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    total: Mapped[float] = mapped_column(Float, default=0)
    payment_method: Mapped[str | None] = mapped_column(String(20))
    payment_status: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    __table_args__ = (
        Index("ix_cloud_aggregator_tenant_created", "tenant_id", "created_at"),
    )
