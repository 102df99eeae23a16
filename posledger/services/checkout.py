import logging
import uuid

from posledger.models.core import PaymentMethod, PaymentStatus
from posledger.schemas.orders import OrderIn
from posledger.schemas.sales import SaleItem, SaleRecord
from posledger.services.billing import Bill, PackingConfig, calculate_packing_charges, compute_bill
from posledger.services.invoice import InvoiceAllocator
from posledger.services.ledger import LedgerStore
from posledger.services.settings import TenantSettingsStore
from posledger.services.tax import TaxConfig
from posledger.util.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


class Checkout:
    """Order completion: bill → invoice number → ledger → confirm."""

    def __init__(self, ledger: LedgerStore, allocator: InvoiceAllocator, tenant_settings: TenantSettingsStore):
        self.ledger = ledger
        self.allocator = allocator
        self.tenant_settings = tenant_settings

    def preview_bill(self, tenant_id: str, order: OrderIn) -> Bill:
        rs = self.tenant_settings.get(tenant_id)
        packing = calculate_packing_charges(
            [{"name": l.name, "category": l.category, "quantity": l.quantity} for l in order.items],
            order.order_type.value, PackingConfig.from_settings(rs),
        )
        return compute_bill(order.subtotal, TaxConfig.from_settings(rs),
                            discount=order.discount, packing_charges=packing.total_charge)

    def complete_sale(
        self,
        tenant_id: str,
        order: OrderIn,
        payment_method: PaymentMethod | str = PaymentMethod.PENDING,
        cashier_name: str | None = None,
        staff_id: str | None = None,
    ) -> SaleRecord:
        """
        Finalize a bill. The sale is done once this returns: it is durable in the
        local ledger. LedgerWriteError propagates and leaves the counter untouched.
        """
        method = PaymentMethod(payment_method)
        bill = self.preview_bill(tenant_id, order)
        invoice_number = self.allocator.next_invoice_number(tenant_id)
        now = utcnow()

        sale = SaleRecord(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            invoice_number=invoice_number,
            order_number=order.order_number,
            order_type=order.order_type,
            table_number=order.table_number,
            source=order.source,
            subtotal=bill.subtotal,
            service_charge=bill.service_charge,
            cgst=bill.cgst,
            sgst=bill.sgst,
            discount=bill.discount,
            round_off=bill.round_off,
            packing_charges=bill.packing_charges,
            grand_total=bill.grand_total,
            payment_method=method,
            payment_status=PaymentStatus.PENDING if method == PaymentMethod.PENDING else PaymentStatus.COMPLETED,
            items=[
                SaleItem(
                    name=l.name,
                    quantity=l.quantity,
                    price=l.unit_price,
                    subtotal=l.line_subtotal,
                    modifiers=[m.name for m in l.modifiers],
                )
                for l in order.items
            ],
            cashier_name=cashier_name,
            staff_id=staff_id,
            created_at=as_utc(order.created_at) if order.created_at else now,
            completed_at=now,
        )
        stored = self.ledger.record(sale)
        self.allocator.confirm_issued(tenant_id)
        return stored
