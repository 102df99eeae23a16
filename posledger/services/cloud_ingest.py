"""
Cloud side of the sync contract: idempotent upsert keyed by (tenant, invoice).

Each submitted transaction is validated and written inside its own savepoint,
so one bad item becomes an error string and its siblings still land. Items
are processed in submission order and the ids of accepted ones are returned
alongside the count.
"""
import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posledger.models.cloud import CloudSalesTransaction
from posledger.schemas.sales import SalePayload, SyncResponse, dump_items
from posledger.util.dates import utcnow

logger = logging.getLogger(__name__)


def _label(raw: dict) -> str:
    if isinstance(raw, dict):
        return str(raw.get("invoiceNumber") or raw.get("invoice_number") or raw.get("id") or "<unknown>")
    return "<not an object>"


def upsert_transaction(db: Session, tenant_id: str, tx: SalePayload) -> CloudSalesTransaction:
    row = (
        db.query(CloudSalesTransaction)
        .filter(CloudSalesTransaction.tenant_id == tenant_id,
                CloudSalesTransaction.invoice_number == tx.invoice_number)
        .first()
    )
    payload = dict(
        tenant_id=tenant_id,
        invoice_number=tx.invoice_number,
        order_number=tx.order_number,
        order_type=tx.order_type.value,
        table_number=tx.table_number,
        source=tx.source.value,
        subtotal=tx.subtotal,
        service_charge=tx.service_charge,
        cgst=tx.cgst,
        sgst=tx.sgst,
        discount=tx.discount,
        round_off=tx.round_off,
        packing_charges=tx.packing_charges,
        grand_total=tx.grand_total,
        payment_method=tx.payment_method.value,
        payment_status=tx.payment_status.value,
        items_json=dump_items(tx.items),
        cashier_name=tx.cashier_name,
        staff_id=tx.staff_id,
        created_at=tx.created_at,
        completed_at=tx.completed_at,
        synced_at=utcnow(),
    )
    if not row:
        # a different invoice reusing this id is a collision, not a replay
        clash = db.get(CloudSalesTransaction, tx.id)
        if clash is not None and clash.tenant_id == tenant_id:
            raise ValueError(f"id {tx.id} already used by invoice {clash.invoice_number}")
        row = CloudSalesTransaction(id=tx.id, **payload)
        db.add(row)
    else:
        # last write wins; the primary key of the first ingest is kept
        if row.id != tx.id:
            logger.warning("Invoice %s of %s resubmitted under a different id (%s, stored %s); overwriting",
                           tx.invoice_number, tenant_id, tx.id, row.id)
        for k, v in payload.items():
            setattr(row, k, v)
    return row


def ingest_batch(db: Session, tenant_id: str, transactions: list[dict]) -> SyncResponse:
    resp = SyncResponse(success=True, synced=0, errors=[], accepted_ids=[])
    for raw in transactions:
        label = _label(raw)
        try:
            tx = SalePayload.model_validate(raw)
        except ValidationError as e:
            resp.errors.append(f"Failed to sync {label}: {e.error_count()} validation error(s): "
                               f"{e.errors()[0]['msg']}")
            continue
        try:
            with db.begin_nested():
                upsert_transaction(db, tenant_id, tx)
        except (SQLAlchemyError, ValueError) as e:
            logger.warning("Failed to ingest %s for %s: %s", label, tenant_id, e)
            resp.errors.append(f"Failed to sync {label}: {e}")
            continue
        resp.synced += 1
        resp.accepted_ids.append(tx.id)
    db.commit()
    logger.info("Ingested %d/%d transactions for %s", resp.synced, len(transactions), tenant_id)
    return resp
