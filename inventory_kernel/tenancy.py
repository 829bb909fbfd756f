"""
Module: inventory_kernel.tenancy
Responsibility: The single place that turns a company id into SQL filters.
    Every selector and service receives a TenantScope and starts its queries
    from one of its builders; there is no unscoped query path into
    tenant-owned tables.
Architecture position: Kernel.  Imports models only.

Invariants enforced:
    - A row owned by another company is indistinguishable from an absent row.
    - Lots and variants carry no company column; ownership is resolved by
      joining variant -> product -> company.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Select, select

from inventory_kernel.models.catalog import Client, Product, ProductVariant
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.sale import Sale
from inventory_kernel.models.stock_lot import StockLot


@dataclass(frozen=True)
class TenantScope:
    """Query builders bound to one company."""

    company_id: UUID

    def __post_init__(self) -> None:
        if self.company_id is None:
            raise ValueError("TenantScope requires a company_id")

    def variants(self) -> Select:
        return (
            select(ProductVariant)
            .join(Product, ProductVariant.product_id == Product.id)
            .where(Product.company_id == self.company_id)
        )

    def variant_ids(self) -> Select:
        return (
            select(ProductVariant.id)
            .join(Product, ProductVariant.product_id == Product.id)
            .where(Product.company_id == self.company_id)
        )

    def lots(self) -> Select:
        return (
            select(StockLot)
            .join(ProductVariant, StockLot.product_variant_id == ProductVariant.id)
            .join(Product, ProductVariant.product_id == Product.id)
            .where(Product.company_id == self.company_id)
        )

    def logs(self) -> Select:
        return select(InventoryLogEntry).where(
            InventoryLogEntry.company_id == self.company_id
        )

    def sales(self) -> Select:
        return select(Sale).where(Sale.company_id == self.company_id)

    def clients(self) -> Select:
        return select(Client).where(Client.company_id == self.company_id)
