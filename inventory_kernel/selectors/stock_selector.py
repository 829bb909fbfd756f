"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read path over stock lots, including per-lot reconciliation of
    the stored quantity against the inventory log.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - reconcile_lot derives the expected quantity only from initial_quantity
      and the log; it never trusts the stored quantity.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import LotReconciliation, StockLotView
from inventory_kernel.exceptions import StockItemNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.stock_lot import StockLot
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.tenancy import TenantScope

logger = get_logger("selectors.stock")


class StockSelector(BaseSelector[StockLot]):
    def list_lots(
        self,
        scope: TenantScope,
        product_variant_id: UUID | None = None,
    ) -> list[StockLotView]:
        """Lots of the tenant ordered by variant, then expiration (no expiration last)."""
        stmt = scope.lots()
        if product_variant_id is not None:
            stmt = stmt.where(StockLot.product_variant_id == product_variant_id)
        stmt = stmt.order_by(
            StockLot.product_variant_id,
            StockLot.expiration_date.is_(None),
            StockLot.expiration_date,
            StockLot.entry_date,
            StockLot.id,
        )
        rows = self.session.execute(stmt).scalars().all()
        return [StockLotView.from_model(lot) for lot in rows]

    def get_lot(self, scope: TenantScope, stock_item_id: UUID) -> StockLotView:
        lot = self.session.execute(
            scope.lots().where(StockLot.id == stock_item_id)
        ).scalar_one_or_none()
        if lot is None:
            raise StockItemNotFoundError(str(stock_item_id))
        return StockLotView.from_model(lot)

    def reconcile_lot(self, scope: TenantScope, stock_item_id: UUID) -> LotReconciliation:
        """
        Replay the lot's log against its initial quantity.

        Raises:
            StockItemNotFoundError: Absent or owned by another tenant.
        """
        lot = self.session.execute(
            scope.lots().where(StockLot.id == stock_item_id)
        ).scalar_one_or_none()
        if lot is None:
            raise StockItemNotFoundError(str(stock_item_id))

        signed = InventoryLogEntry.new_qty - InventoryLogEntry.previous_qty
        net_change, entry_count, reverted_count = self.session.execute(
            select(
                func.coalesce(
                    func.sum(signed).filter(InventoryLogEntry.is_reverted.is_(False)),
                    0,
                ),
                func.count(InventoryLogEntry.id),
                func.count(InventoryLogEntry.id).filter(
                    InventoryLogEntry.is_reverted.is_(True)
                ),
            ).where(InventoryLogEntry.stock_item_id == stock_item_id)
        ).one()

        result = LotReconciliation(
            stock_item_id=lot.id,
            initial_quantity=lot.initial_quantity,
            current_quantity=lot.quantity,
            expected_quantity=lot.initial_quantity + int(net_change),
            entry_count=int(entry_count),
            reverted_count=int(reverted_count),
        )
        if not result.is_balanced:
            logger.error("lot_reconciliation_drift", extra={
                "stock_item_id": str(lot.id),
                "current_quantity": result.current_quantity,
                "expected_quantity": result.expected_quantity,
            })
        return result
