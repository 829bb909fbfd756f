"""
InventoryLogService -- manual adjustments, reversals and sale movements.

Responsibility:
    Applies ad-hoc quantity deltas to a lot (entries, returns, losses,
    corrections), reverts a previous log entry, and appends the SALE entries
    written by the sale orchestrator.  Each operation changes the lot through
    StockLedgerService and writes exactly one audit record.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.

Invariants enforced:
    - previous_qty and new_qty of every entry are the lot quantities
      immediately before and after the change made in the same transaction.
    - A lot never goes negative: the target quantity is checked before the
      lot is touched.
    - Reversal is single-use.  It applies the inverse of the entry's signed
      effect (new_qty - previous_qty) and flips is_reverted on the original
      entry.  No compensating entry is written.

Failure modes:
    - StockItemNotFoundError: lot absent or owned by another tenant.
    - InventoryLogNotFoundError: entry absent or owned by another tenant.
    - AlreadyRevertedError: entry was reverted before.
    - NegativeResultingQuantityError: change or reversal would go below zero.
    - InvalidQuantityError: quantity_change is zero or not an int.
    - StockConflictError: lot moved concurrently between read and write.

Audit relevance:
    initial_quantity + sum(signed_change of non-reverted entries) equals the
    lot quantity after every operation here.  Reverting an entry restores the
    lot to exactly the quantity it would have without that entry.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.enums import InventoryLogType, SALE_SOURCE_TYPE
from inventory_kernel.exceptions import (
    AlreadyRevertedError,
    InvalidQuantityError,
    InventoryLogNotFoundError,
    NegativeResultingQuantityError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.stock_ledger import StockLedgerService
from inventory_kernel.tenancy import TenantScope

logger = get_logger("services.inventory_log")


class InventoryLogService(BaseService[InventoryLogEntry]):
    """
    Writer of the inventory audit trail.

    Contract:
        Runs inside the caller's transaction; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        stock_ledger: StockLedgerService | None = None,
    ):
        super().__init__(session, clock)
        self._stock = stock_ledger or StockLedgerService(session, self.clock)

    def apply_manual(
        self,
        scope: TenantScope,
        stock_item_id: UUID,
        log_type: InventoryLogType,
        quantity_change: int,
        source_id: str | None = None,
        source_type: str | None = None,
        note: str | None = None,
        user_id: UUID | None = None,
        is_manual: bool = True,
    ) -> InventoryLogEntry:
        """
        Apply a signed delta to a lot and record it.

        Preconditions: quantity_change is a non-zero int.
        Postconditions: lot.quantity == entry.new_qty ==
            entry.previous_qty + quantity_change.

        Raises:
            InvalidQuantityError, StockItemNotFoundError,
            NegativeResultingQuantityError, StockConflictError.
        """
        log_type = InventoryLogType(log_type)
        if isinstance(quantity_change, bool) or not isinstance(quantity_change, int):
            raise InvalidQuantityError("quantity_change", quantity_change, "must be an integer")
        if quantity_change == 0:
            raise InvalidQuantityError("quantity_change", quantity_change, "cannot be zero")

        lot = self._stock.get_lot(scope, stock_item_id, lock=True)
        previous_qty = lot.quantity
        new_qty = previous_qty + quantity_change
        if new_qty < 0:
            logger.warning("manual_adjustment_rejected", extra={
                "stock_item_id": str(stock_item_id),
                "current_quantity": previous_qty,
                "quantity_change": quantity_change,
            })
            raise NegativeResultingQuantityError(
                str(stock_item_id), previous_qty, quantity_change
            )

        self._stock.apply_quantity(
            lot.id, previous_qty, new_qty, product_variant_id=lot.product_variant_id
        )
        entry = self._append(
            scope,
            stock_item_id=lot.id,
            log_type=log_type,
            quantity_change=quantity_change,
            previous_qty=previous_qty,
            new_qty=new_qty,
            is_manual=is_manual,
            source_id=source_id,
            source_type=source_type,
            note=note,
            user_id=user_id,
        )

        logger.info("manual_adjustment_applied", extra={
            "log_id": str(entry.id),
            "stock_item_id": str(lot.id),
            "type": log_type.value,
            "previous_qty": previous_qty,
            "new_qty": new_qty,
        })
        return entry

    def revert(
        self,
        scope: TenantScope,
        log_id: UUID,
        reverted_by_id: UUID | None,
    ) -> InventoryLogEntry:
        """
        Undo the effect of one log entry and mark it reverted.

        The lot moves to ``lot.quantity - (entry.new_qty - entry.previous_qty)``.
        For a SALE entry that adds the sold units back; for a manual entry it
        subtracts the stored delta.

        Raises:
            InventoryLogNotFoundError, AlreadyRevertedError,
            StockItemNotFoundError, NegativeResultingQuantityError,
            StockConflictError.
        """
        entry = self.session.execute(
            scope.logs()
            .where(InventoryLogEntry.id == log_id)
            .with_for_update()
        ).scalar_one_or_none()
        if entry is None:
            raise InventoryLogNotFoundError(str(log_id))

        if entry.is_reverted:
            logger.warning("reversal_rejected_already_reverted", extra={
                "log_id": str(log_id),
                "reverted_by_id": str(entry.reverted_by_id) if entry.reverted_by_id else None,
            })
            raise AlreadyRevertedError(
                str(log_id),
                str(entry.reverted_by_id) if entry.reverted_by_id else None,
            )

        lot = self._stock.get_lot(scope, entry.stock_item_id, lock=True)
        inverse = -entry.signed_change
        current = lot.quantity
        new_qty = current + inverse
        if new_qty < 0:
            logger.warning("reversal_rejected_negative_quantity", extra={
                "log_id": str(log_id),
                "stock_item_id": str(lot.id),
                "current_quantity": current,
                "quantity_change": inverse,
            })
            raise NegativeResultingQuantityError(str(lot.id), current, inverse)

        self._stock.apply_quantity(
            lot.id, current, new_qty, product_variant_id=lot.product_variant_id
        )

        entry.is_reverted = True
        entry.reverted_by_id = reverted_by_id
        entry.reverted_at = self.clock.now()
        self.session.flush()

        logger.info("inventory_log_reverted", extra={
            "log_id": str(entry.id),
            "stock_item_id": str(lot.id),
            "type": entry.type,
            "previous_qty": current,
            "new_qty": new_qty,
            "reverted_by_id": str(reverted_by_id) if reverted_by_id else None,
        })
        return entry

    def record_sale_movement(
        self,
        scope: TenantScope,
        sale_id: UUID,
        stock_item_id: UUID,
        product_variant_id: UUID,
        qty_allocated: int,
        previous_qty: int,
        user_id: UUID | None = None,
    ) -> InventoryLogEntry:
        """
        Decrement a lot for a sale and append the SALE entry.

        quantity_change stores the positive number of units removed;
        previous_qty - quantity_change == new_qty.

        Raises:
            NegativeResultingQuantityError, StockConflictError.
        """
        new_qty = previous_qty - qty_allocated
        self._stock.apply_quantity(
            stock_item_id, previous_qty, new_qty, product_variant_id=product_variant_id
        )
        return self._append(
            scope,
            stock_item_id=stock_item_id,
            log_type=InventoryLogType.SALE,
            quantity_change=qty_allocated,
            previous_qty=previous_qty,
            new_qty=new_qty,
            is_manual=False,
            source_id=str(sale_id),
            source_type=SALE_SOURCE_TYPE,
            note=f"Sale #{sale_id} - {product_variant_id}",
            user_id=user_id,
        )

    def _append(
        self,
        scope: TenantScope,
        *,
        stock_item_id: UUID,
        log_type: InventoryLogType,
        quantity_change: int,
        previous_qty: int,
        new_qty: int,
        is_manual: bool,
        source_id: str | None,
        source_type: str | None,
        note: str | None,
        user_id: UUID | None,
    ) -> InventoryLogEntry:
        entry = InventoryLogEntry(
            company_id=scope.company_id,
            stock_item_id=stock_item_id,
            type=log_type.value,
            quantity_change=quantity_change,
            previous_qty=previous_qty,
            new_qty=new_qty,
            is_manual=is_manual,
            is_reverted=False,
            source_id=source_id,
            source_type=source_type,
            user_id=user_id,
            note=note,
            created_at=self.clock.now(),
        )
        self.session.add(entry)
        self.session.flush()
        return entry
