"""
Module: inventory_services
Responsibility:
    Orchestration above the kernel: the sale transaction orchestrator and
    the InventoryLedger facade that owns every transaction.
"""

from inventory_services.ledger import InventoryLedger
from inventory_services.sale_service import SaleService

__all__ = ["InventoryLedger", "SaleService"]
