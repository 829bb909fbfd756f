"""Ledger enumerations.  Values are the persisted strings."""

from enum import Enum


class InventoryLogType(str, Enum):
    """Kind of stock movement recorded by an inventory log entry."""

    ENTRY = "ENTRY"
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    LOSS = "LOSS"


class SaleStatus(str, Enum):
    OPEN = "OPEN"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


# source_type written on log entries produced by the sale orchestrator
SALE_SOURCE_TYPE = "SALE"
