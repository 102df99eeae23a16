from sqlalchemy import (
    String, Boolean, Numeric, Text, Integer, Float, Index, UniqueConstraint, JSON
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from posledger.db import Base
from posledger.models.common import IdMixin, TSMMixin, UTCDateTime

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderType(str, PyEnum):
    DINE_IN = "dine-in"
    TAKEOUT = "takeout"
    DELIVERY = "delivery"

class SaleSource(str, PyEnum):
    POS = "pos"
    ZOMATO = "zomato"
    SWIGGY = "swiggy"
    WEBSITE = "website"

class PaymentMethod(str, PyEnum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"
    COUPON = "coupon"
    COUPON_CASH = "coupon_cash"
    COUPON_CARD = "coupon_card"
    COUPON_UPI = "coupon_upi"
    ONLINE = "online"
    PENDING = "pending"

class PaymentStatus(str, PyEnum):
    COMPLETED = "completed"
    PENDING = "pending"

# aggregator statuses that count as a sale (fulfilled from the kitchen's side)
FULFILLED_AGGREGATOR_STATUSES = (
    "ready", "pending_pickup", "picked_up", "out_for_delivery", "completed", "delivered",
)

# ── Tenant settings (tax config + invoice counter) ──────────────────────────
class RestaurantSettings(Base, IdMixin, TSMMixin):
    __tablename__ = "restaurant_settings"
    tenant_id: Mapped[str] = mapped_column(String(64), unique=True)
    name: Mapped[str | None] = mapped_column(String(200))
    gstin: Mapped[str | None] = mapped_column(String(32))
    # tax
    tax_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    cgst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=2.5)
    sgst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=2.5)
    service_charge_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    service_charge_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    round_off_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    tax_included_in_price: Mapped[bool] = mapped_column(Boolean, default=False)
    # packing (takeout only)
    packing_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    packing_default_charge: Mapped[float] = mapped_column(Numeric(10, 2), default=5)
    packing_charges_by_category: Mapped[dict | None] = mapped_column(JSON, default=dict)
    # invoice numbering
    invoice_prefix: Mapped[str] = mapped_column(String(20), default="INV")
    invoice_start_number: Mapped[int] = mapped_column(Integer, default=1)
    current_invoice_number: Mapped[int] = mapped_column(Integer, default=1)

# ── Local sales ledger ──────────────────────────────────────────────────────
class SalesTransaction(Base, IdMixin):
    __tablename__ = "sales_transactions"
    tenant_id: Mapped[str] = mapped_column(String(64))
    invoice_number: Mapped[str] = mapped_column(String(60))
    order_number: Mapped[str | None] = mapped_column(String(60))
    order_type: Mapped[str] = mapped_column(String(20))
    table_number: Mapped[int | None] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(String(20), default=SaleSource.POS.value)
    subtotal: Mapped[float] = mapped_column(Float)
    service_charge: Mapped[float] = mapped_column(Float, default=0)
    cgst: Mapped[float] = mapped_column(Float, default=0)
    sgst: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    round_off: Mapped[float] = mapped_column(Float, default=0)
    packing_charges: Mapped[float] = mapped_column(Float, default=0)
    grand_total: Mapped[float] = mapped_column(Float)
    payment_method: Mapped[str] = mapped_column(String(20))
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.COMPLETED.value)
    payment_method_updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    items_json: Mapped[str] = mapped_column(Text)  # opaque, items are immutable once sold
    cashier_name: Mapped[str | None] = mapped_column(String(160))
    staff_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime)
    synced_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_sales_tenant_invoice"),
        Index("ix_sales_tenant_completed", "tenant_id", "completed_at"),
        Index("ix_sales_tenant_synced", "tenant_id", "synced_at"),
        Index("ix_sales_payment", "payment_method"),
    )

# ── Aggregator orders (written by the delivery channel, read-only here) ─────
class AggregatorOrder(Base, IdMixin):
    __tablename__ = "aggregator_orders"
    tenant_id: Mapped[str | None] = mapped_column(String(64))
    order_id: Mapped[str] = mapped_column(String(80), unique=True)
    order_number: Mapped[str] = mapped_column(String(60))
    aggregator: Mapped[str] = mapped_column(String(20))  # zomato / swiggy / direct
    aggregator_order_id: Mapped[str] = mapped_column(String(80))
    aggregator_status: Mapped[str | None] = mapped_column(String(40))
    status: Mapped[str] = mapped_column(String(30), default="pending")
    order_type: Mapped[str] = mapped_column(String(20), default=OrderType.DELIVERY.value)
    customer_name: Mapped[str | None] = mapped_column(String(160))
    items_json: Mapped[str] = mapped_column(Text, default="[]")
    subtotal: Mapped[float] = mapped_column(Float, default=0)
    tax: Mapped[float] = mapped_column(Float, default=0)
    delivery_fee: Mapped[float] = mapped_column(Float, default=0)
    platform_fee: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    total: Mapped[float] = mapped_column(Float, default=0)
    payment_method: Mapped[str | None] = mapped_column(String(20))
    payment_status: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    synced_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    __table_args__ = (
        Index("ix_aggregator_orders_created", "created_at"),
        Index("ix_aggregator_orders_status", "status"),
    )
