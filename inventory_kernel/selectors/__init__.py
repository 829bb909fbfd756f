"""Read-only selectors.  Every query is tenant-scoped."""

from inventory_kernel.selectors.catalog_selector import CatalogSelector
from inventory_kernel.selectors.inventory_log_selector import InventoryLogSelector
from inventory_kernel.selectors.sale_selector import SaleSelector
from inventory_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "CatalogSelector",
    "InventoryLogSelector",
    "SaleSelector",
    "StockSelector",
]
