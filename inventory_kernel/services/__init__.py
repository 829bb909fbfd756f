"""Kernel write services.  Flush-only; the caller's unit of work commits."""

from inventory_kernel.services.inventory_log_service import InventoryLogService
from inventory_kernel.services.stock_ledger import StockLedgerService

__all__ = [
    "InventoryLogService",
    "StockLedgerService",
]
