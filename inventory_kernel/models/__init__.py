"""ORM models for the inventory kernel."""

from inventory_kernel.models.catalog import Client, Company, Product, ProductVariant
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.models.stock_lot import StockLot

__all__ = [
    "Client",
    "Company",
    "InventoryLogEntry",
    "Product",
    "ProductVariant",
    "Sale",
    "SaleItem",
    "StockLot",
]
