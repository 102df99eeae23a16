# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderType, SaleSource, PaymentMethod, PaymentStatus, FULFILLED_AGGREGATOR_STATUSES,

    # Tenant settings
    RestaurantSettings,

    # Ledger
    SalesTransaction, AggregatorOrder,
)
from .cloud import CloudSalesTransaction, CloudAggregatorOrder  # noqa: F401

__all__ = [
    "OrderType", "SaleSource", "PaymentMethod", "PaymentStatus", "FULFILLED_AGGREGATOR_STATUSES",
    "RestaurantSettings",
    "SalesTransaction", "AggregatorOrder",
    "CloudSalesTransaction", "CloudAggregatorOrder",
]
