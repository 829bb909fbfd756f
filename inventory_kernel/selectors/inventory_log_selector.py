"""
Module: inventory_kernel.selectors.inventory_log_selector
Responsibility: Read path over the inventory audit trail.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Listings are tenant-scoped and ordered newest first, with the entry id
      as tie-breaker so equal timestamps still list deterministically.
"""

from __future__ import annotations

from uuid import UUID

from inventory_kernel.domain.dtos import InventoryLogView
from inventory_kernel.domain.enums import InventoryLogType
from inventory_kernel.exceptions import InventoryLogNotFoundError
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.tenancy import TenantScope


class InventoryLogSelector(BaseSelector[InventoryLogEntry]):
    """Queries over InventoryLogEntry, returning InventoryLogView DTOs."""

    def list_logs(
        self,
        scope: TenantScope,
        stock_item_id: UUID | None = None,
        log_type: InventoryLogType | str | None = None,
    ) -> list[InventoryLogView]:
        """
        Entries of the tenant, newest first.

        Args:
            scope: Tenant.
            stock_item_id: Only entries for this lot.
            log_type: Only entries of this type.
        """
        stmt = scope.logs()
        if stock_item_id is not None:
            stmt = stmt.where(InventoryLogEntry.stock_item_id == stock_item_id)
        if log_type is not None:
            stmt = stmt.where(
                InventoryLogEntry.type == InventoryLogType(log_type).value
            )
        stmt = stmt.order_by(
            InventoryLogEntry.created_at.desc(),
            InventoryLogEntry.id.desc(),
        )
        rows = self.session.execute(stmt).scalars().all()
        return [InventoryLogView.from_model(row) for row in rows]

    def get_log(self, scope: TenantScope, log_id: UUID) -> InventoryLogView:
        """
        Raises:
            InventoryLogNotFoundError: Absent or owned by another tenant.
        """
        row = self.session.execute(
            scope.logs().where(InventoryLogEntry.id == log_id)
        ).scalar_one_or_none()
        if row is None:
            raise InventoryLogNotFoundError(str(log_id))
        return InventoryLogView.from_model(row)

    def entries_for_source(
        self,
        scope: TenantScope,
        source_type: str,
        source_id: str,
    ) -> list[InventoryLogView]:
        """Entries written by one source (e.g. every SALE entry of a sale), oldest first."""
        rows = self.session.execute(
            scope.logs()
            .where(InventoryLogEntry.source_type == source_type)
            .where(InventoryLogEntry.source_id == source_id)
            .order_by(InventoryLogEntry.created_at, InventoryLogEntry.id)
        ).scalars().all()
        return [InventoryLogView.from_model(row) for row in rows]
