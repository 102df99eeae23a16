from typing import Optional

from pydantic import Field

from posledger.schemas.common import CamelModel


class SourceTotals(CamelModel):
    orders: int = 0
    sales: float = 0.0


class SalesSummary(CamelModel):
    total_sales: float = 0.0
    total_orders: int = 0
    average_order_value: float = 0.0
    total_tax: float = 0.0
    total_discount: float = 0.0
    total_service_charge: float = 0.0
    by_source: Optional[dict[str, SourceTotals]] = None


class SourceBreakdown(CamelModel):
    pos: SourceTotals = Field(default_factory=SourceTotals)
    zomato: SourceTotals = Field(default_factory=SourceTotals)
    swiggy: SourceTotals = Field(default_factory=SourceTotals)
    website: SourceTotals = Field(default_factory=SourceTotals)


class OrderTypeTotals(CamelModel):
    count: int = 0
    sales: float = 0.0


class HourlySales(CamelModel):
    hour: int
    sales: float = 0.0
    orders: int = 0


class TopItem(CamelModel):
    name: str
    quantity: float = 0
    revenue: float = 0.0


class AggregatorSummary(CamelModel):
    total_sales: float = 0.0
    total_orders: int = 0
    total_tax: float = 0.0
    total_discount: float = 0.0
    by_aggregator: dict[str, SourceTotals] = Field(default_factory=dict)


class CombinedSummary(CamelModel):
    summary: SalesSummary
    source_breakdown: SourceBreakdown
    pos: SalesSummary
    aggregator: AggregatorSummary


class SalesBreakdown(CamelModel):
    by_payment_method: dict[str, float] = Field(default_factory=dict)
    by_order_type: dict[str, OrderTypeTotals] = Field(default_factory=dict)
    by_hour: list[HourlySales] = Field(default_factory=list)


class SyncStats(CamelModel):
    total: int = 0
    synced: int = 0
    unsynced: int = 0
