"""
Local sales ledger: the durable, on-device record of every completed sale.

Rows are append-mostly. The only updates are the one-time payment method
correction and the synced_at stamp written by the outbox engine.
"""
import logging
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from posledger.db import Database
from posledger.exceptions import LedgerWriteError, PaymentMethodLocked, PosLedgerError, SaleNotFound
from posledger.models.core import OrderType, PaymentMethod, PaymentStatus, SalesTransaction
from posledger.schemas.reports import SyncStats
from posledger.schemas.sales import SaleRecord, dump_items
from posledger.util.dates import local_day_bounds, utcnow

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50
# keep IN (...) lists well under SQLite's bound-parameter limit
_ID_CHUNK = 500


class LedgerQuery(BaseModel):
    tenant_id: str
    day: Optional[date] = None
    start_day: Optional[date] = None
    end_day: Optional[date] = None
    search: Optional[str] = None
    order_type: Optional[OrderType] = None
    limit: Optional[int] = None


class LedgerStore:
    def __init__(self, db: Database, tz: str = "UTC"):
        self.db = db
        self.tz = tz

    # ── writes ──────────────────────────────────────────────────────────────
    def record(self, sale: SaleRecord) -> SaleRecord:
        """
        Persist a completed sale. Idempotent on (tenant, invoice): when the invoice
        is already in the ledger the stored row wins and is returned unchanged.
        Raises LedgerWriteError if the sale could not be made durable.
        """
        with self.db.session() as s:
            existing = self._by_invoice(s, sale.invoice_number, sale.tenant_id)
            if existing:
                logger.info("Sale %s already recorded for %s, keeping stored row",
                            sale.invoice_number, sale.tenant_id)
                return SaleRecord.from_row(existing)

            row = SalesTransaction(
                id=sale.id,
                tenant_id=sale.tenant_id,
                invoice_number=sale.invoice_number,
                order_number=sale.order_number,
                order_type=sale.order_type.value,
                table_number=sale.table_number,
                source=sale.source.value,
                subtotal=sale.subtotal,
                service_charge=sale.service_charge,
                cgst=sale.cgst,
                sgst=sale.sgst,
                discount=sale.discount,
                round_off=sale.round_off,
                packing_charges=sale.packing_charges,
                grand_total=sale.grand_total,
                payment_method=sale.payment_method.value,
                payment_status=sale.payment_status.value,
                items_json=dump_items(sale.items),
                cashier_name=sale.cashier_name,
                staff_id=sale.staff_id,
                created_at=sale.created_at,
                completed_at=sale.completed_at,
                synced_at=None,
            )
            s.add(row)
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                # lost a race on the unique (tenant, invoice) index: same outcome as a replay
                existing = self._by_invoice(s, sale.invoice_number, sale.tenant_id)
                if existing:
                    return SaleRecord.from_row(existing)
                raise LedgerWriteError(f"could not record sale {sale.invoice_number}: {e.orig}") from e
            except SQLAlchemyError as e:
                s.rollback()
                raise LedgerWriteError(f"could not record sale {sale.invoice_number}: {e}") from e

            logger.info("Recorded sale %s - %.2f", sale.invoice_number, sale.grand_total)
            return SaleRecord.from_row(row)

    def update_payment_method(self, invoice_number: str, method: PaymentMethod | str,
                              tenant_id: str | None = None) -> SaleRecord:
        """Set the payment method chosen after the bill was printed. Allowed once per sale."""
        method = PaymentMethod(method)
        with self.db.session() as s:
            row = self._one_by_invoice(s, invoice_number, tenant_id)
            if row.payment_method_updated_at is not None:
                raise PaymentMethodLocked(
                    f"payment method of {invoice_number} was already set to {row.payment_method}"
                )
            if row.synced_at is not None:
                logger.warning("Payment method of %s changed after sync; cloud copy keeps %s",
                               invoice_number, row.payment_method)
            row.payment_method = method.value
            row.payment_status = (PaymentStatus.PENDING if method == PaymentMethod.PENDING
                                  else PaymentStatus.COMPLETED).value
            row.payment_method_updated_at = utcnow()
            try:
                s.commit()
            except SQLAlchemyError as e:
                s.rollback()
                raise LedgerWriteError(f"could not update payment method of {invoice_number}") from e
            logger.info("Updated payment method for %s to %s", invoice_number, method.value)
            return SaleRecord.from_row(row)

    def mark_synced(self, ids: list[str], at: datetime | None = None) -> int:
        """Stamp synced_at on the given rows. Rows already stamped keep their stamp."""
        if not ids:
            return 0
        at = at or utcnow()
        updated = 0
        with self.db.session() as s:
            for i in range(0, len(ids), _ID_CHUNK):
                chunk = ids[i:i + _ID_CHUNK]
                updated += (
                    s.query(SalesTransaction)
                    .filter(SalesTransaction.id.in_(chunk), SalesTransaction.synced_at.is_(None))
                    .update({SalesTransaction.synced_at: at}, synchronize_session=False)
                )
            s.commit()
        logger.info("Marked %d transactions as synced", updated)
        return updated

    def purge_synced(self, older_than: datetime) -> int:
        """Retention: drop rows that reached the cloud and completed before `older_than`."""
        with self.db.session() as s:
            n = (
                s.query(SalesTransaction)
                .filter(SalesTransaction.synced_at.isnot(None), SalesTransaction.completed_at < older_than)
                .delete(synchronize_session=False)
            )
            s.commit()
        if n:
            logger.info("Purged %d synced transactions completed before %s", n, older_than.isoformat())
        return n

    # ── reads ───────────────────────────────────────────────────────────────
    def exists(self, invoice_number: str, tenant_id: str | None = None) -> bool:
        with self.db.session() as s:
            q = s.query(func.count(SalesTransaction.id)).filter(SalesTransaction.invoice_number == invoice_number)
            if tenant_id is not None:
                q = q.filter(SalesTransaction.tenant_id == tenant_id)
            return (q.scalar() or 0) > 0

    def get_by_invoice(self, invoice_number: str, tenant_id: str | None = None) -> SaleRecord | None:
        with self.db.session() as s:
            row = self._by_invoice(s, invoice_number, tenant_id)
            return SaleRecord.from_row(row) if row else None

    def recent_dine_in(self, tenant_id: str, limit: int = 20) -> list[SaleRecord]:
        with self.db.session() as s:
            rows = (
                s.query(SalesTransaction)
                .filter(SalesTransaction.tenant_id == tenant_id,
                        SalesTransaction.order_type == OrderType.DINE_IN.value)
                .order_by(SalesTransaction.completed_at.desc())
                .limit(limit)
                .all()
            )
            return [SaleRecord.from_row(r) for r in rows]

    def query(self, filters: LedgerQuery) -> list[SaleRecord]:
        """Newest first. Day filters are local calendar days in the store's timezone."""
        with self.db.session() as s:
            q = s.query(SalesTransaction).filter(SalesTransaction.tenant_id == filters.tenant_id)

            first = filters.day or filters.start_day
            last = filters.day or filters.end_day or filters.start_day
            if first is None and filters.end_day is not None:
                first = filters.end_day
            if first is not None:
                start, end = local_day_bounds(first, last, self.tz)
                q = q.filter(SalesTransaction.completed_at >= start, SalesTransaction.completed_at < end)

            if filters.order_type is not None:
                q = q.filter(SalesTransaction.order_type == filters.order_type.value)

            limit = filters.limit
            if filters.search:
                like = f"%{filters.search.strip()}%"
                q = q.filter(or_(
                    SalesTransaction.invoice_number.like(like),
                    cast(SalesTransaction.table_number, String).like(like),
                ))
                limit = limit or SEARCH_LIMIT

            q = q.order_by(SalesTransaction.completed_at.desc())
            if limit:
                q = q.limit(limit)
            return [SaleRecord.from_row(r) for r in q.all()]

    def sales_by_date(self, tenant_id: str, day: str | date) -> list[SaleRecord]:
        return self.query(LedgerQuery(tenant_id=tenant_id, day=day))

    def sales_for_range(self, tenant_id: str, start_day: str | date, end_day: str | date) -> list[SaleRecord]:
        return self.query(LedgerQuery(tenant_id=tenant_id, start_day=start_day, end_day=end_day))

    def search(self, tenant_id: str, text: str, order_type: OrderType | None = None) -> list[SaleRecord]:
        return self.query(LedgerQuery(tenant_id=tenant_id, search=text, order_type=order_type))

    def between(self, tenant_id: str, start: datetime, end: datetime) -> list[SaleRecord]:
        """Sales completed within [start, end) (absolute instants)."""
        with self.db.session() as s:
            rows = (
                s.query(SalesTransaction)
                .filter(SalesTransaction.tenant_id == tenant_id,
                        SalesTransaction.completed_at >= start,
                        SalesTransaction.completed_at < end)
                .order_by(SalesTransaction.completed_at.desc())
                .all()
            )
            return [SaleRecord.from_row(r) for r in rows]

    def unsynced(self, tenant_id: str, limit: int = 500) -> list[SaleRecord]:
        """Pending rows, oldest first so the cloud receives them in order."""
        with self.db.session() as s:
            rows = (
                s.query(SalesTransaction)
                .filter(SalesTransaction.tenant_id == tenant_id, SalesTransaction.synced_at.is_(None))
                .order_by(SalesTransaction.created_at.asc(), SalesTransaction.completed_at.asc())
                .limit(limit)
                .all()
            )
            return [SaleRecord.from_row(r) for r in rows]

    def sync_stats(self, tenant_id: str) -> SyncStats:
        with self.db.session() as s:
            total = (s.query(func.count(SalesTransaction.id))
                     .filter(SalesTransaction.tenant_id == tenant_id).scalar() or 0)
            synced = (s.query(func.count(SalesTransaction.id))
                      .filter(SalesTransaction.tenant_id == tenant_id,
                              SalesTransaction.synced_at.isnot(None)).scalar() or 0)
        return SyncStats(total=total, synced=synced, unsynced=total - synced)

    # ── helpers ─────────────────────────────────────────────────────────────
    @staticmethod
    def _by_invoice(s: Session, invoice_number: str, tenant_id: str | None) -> SalesTransaction | None:
        q = s.query(SalesTransaction).filter(SalesTransaction.invoice_number == invoice_number)
        if tenant_id is not None:
            q = q.filter(SalesTransaction.tenant_id == tenant_id)
        return q.first()

    @staticmethod
    def _one_by_invoice(s: Session, invoice_number: str, tenant_id: str | None) -> SalesTransaction:
        q = s.query(SalesTransaction).filter(SalesTransaction.invoice_number == invoice_number)
        if tenant_id is not None:
            q = q.filter(SalesTransaction.tenant_id == tenant_id)
        rows = q.limit(2).all()
        if not rows:
            raise SaleNotFound(f"no sale with invoice {invoice_number}")
        if len(rows) > 1:
            raise PosLedgerError(f"invoice {invoice_number} exists for several tenants; pass tenant_id")
        return rows[0]
