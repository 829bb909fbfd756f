"""Read path over sales."""

from __future__ import annotations

from uuid import UUID

from inventory_kernel.domain.dtos import SaleWithItems
from inventory_kernel.exceptions import SaleNotFoundError
from inventory_kernel.models.sale import Sale
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.tenancy import TenantScope


class SaleSelector(BaseSelector[Sale]):
    def get_sale(self, scope: TenantScope, sale_id: UUID) -> SaleWithItems:
        """
        Raises:
            SaleNotFoundError: Absent or owned by another tenant.
        """
        sale = self.session.execute(
            scope.sales().where(Sale.id == sale_id)
        ).scalar_one_or_none()
        if sale is None:
            raise SaleNotFoundError(str(sale_id))
        return SaleWithItems.from_model(sale)

    def list_sales(self, scope: TenantScope) -> list[SaleWithItems]:
        """Sales of the tenant, most recent sale_date first."""
        rows = self.session.execute(
            scope.sales().order_by(Sale.sale_date.desc(), Sale.id.desc())
        ).scalars().all()
        return [SaleWithItems.from_model(sale) for sale in rows]
