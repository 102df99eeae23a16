from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from posledger.models.core import OrderType, PaymentMethod, SaleSource


class ModifierIn(BaseModel):
    name: str
    price: float = Field(default=0, ge=0)


class OrderLineIn(BaseModel):
    name: str
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0)
    category: Optional[str] = None
    modifiers: list[ModifierIn] = Field(default_factory=list)

    @property
    def line_subtotal(self) -> float:
        per_unit = self.unit_price + sum(m.price for m in self.modifiers)
        return round(per_unit * self.quantity, 2)


class OrderIn(BaseModel):
    order_number: Optional[str] = None
    order_type: OrderType = OrderType.DINE_IN
    table_number: Optional[int] = None
    source: SaleSource = SaleSource.POS
    items: list[OrderLineIn] = Field(min_length=1)
    discount: float = Field(default=0, ge=0)
    created_at: Optional[datetime] = None

    @property
    def subtotal(self) -> float:
        return round(sum(l.line_subtotal for l in self.items), 2)


class PaymentMethodIn(BaseModel):
    payment_method: PaymentMethod


class CompleteSaleIn(OrderIn):
    payment_method: PaymentMethod = PaymentMethod.PENDING
    cashier_name: Optional[str] = None
    staff_id: Optional[str] = None
