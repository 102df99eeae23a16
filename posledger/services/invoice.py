"""
Tenant-scoped invoice numbers: INV-2501-000123.

Two-phase: next_invoice_number() only previews, confirm_issued() advances the
durable counter once the sale is in the ledger. A crash in between leaves the
counter behind; the preview skips numbers the ledger already holds, so the
worst case is a gap, never a reissued invoice.
"""
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from posledger.db import Database
from posledger.models.core import RestaurantSettings, SalesTransaction
from posledger.services.settings import get_or_create

logger = logging.getLogger(__name__)


def format_invoice_number(prefix: str, counter: int, when: datetime) -> str:
    return f"{prefix}-{when:%y%m}-{counter:06d}"


class InvoiceAllocator:
    # single writer: one process on one device owns a tenant's counter
    def __init__(self, db: Database, tz: str = "UTC", clock=None):
        self.db = db
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(ZoneInfo(self.tz)))

    def next_invoice_number(self, tenant_id: str) -> str:
        with self.db.session() as s:
            rs = get_or_create(s, tenant_id)
            _, number = self._next_free(s, rs)
            s.commit()
            return number

    def confirm_issued(self, tenant_id: str) -> int:
        """Advance the counter past the number the last preview handed out. Returns the new counter."""
        with self.db.session() as s:
            rs = get_or_create(s, tenant_id)
            counter = max(rs.current_invoice_number or 1, rs.invoice_start_number or 1)
            when = self._clock()
            prefix = rs.invoice_prefix or "INV"
            if self._taken(s, tenant_id, format_invoice_number(prefix, counter, when)):
                while self._taken(s, tenant_id, format_invoice_number(prefix, counter, when)):
                    counter += 1
            else:
                logger.warning("confirm_issued(%s) with no recorded sale for counter %d", tenant_id, counter)
                counter += 1
            rs.current_invoice_number = counter
            s.commit()
            return counter

    def _next_free(self, s: Session, rs: RestaurantSettings) -> tuple[int, str]:
        counter = max(rs.current_invoice_number or 1, rs.invoice_start_number or 1)
        when = self._clock()
        number = format_invoice_number(rs.invoice_prefix or "INV", counter, when)
        while self._taken(s, rs.tenant_id, number):
            logger.info("Invoice %s already in ledger, skipping", number)
            counter += 1
            number = format_invoice_number(rs.invoice_prefix or "INV", counter, when)
        return counter, number

    @staticmethod
    def _taken(s: Session, tenant_id: str, number: str) -> bool:
        return s.query(SalesTransaction.id).filter(
            SalesTransaction.tenant_id == tenant_id,
            SalesTransaction.invoice_number == number,
        ).first() is not None
