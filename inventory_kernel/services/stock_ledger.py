"""
StockLedgerService -- the only writer of stock lot quantities.

Responsibility:
    Receives new lots, reads tenant-scoped lot snapshots (optionally row
    locked) for allocation, and applies quantity changes with a
    compare-and-swap so a stale read can never overwrite a newer value.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the caller's unit of
    work commits.

Invariants enforced:
    - quantity >= 0: a negative target is rejected before any SQL is sent,
      and the table carries a CHECK constraint as a backstop.
    - Lost updates are impossible: every change is
      ``UPDATE stock_items SET quantity = :new WHERE id = :id AND quantity = :expected``.
      Zero affected rows means another transaction moved the lot first.
    - Row locks on lots are taken in primary-key order, so two sales over
      overlapping lots cannot deadlock.

Failure modes:
    - ProductVariantNotFoundError: receive_lot for a variant of another tenant.
    - StockItemNotFoundError: get_lot for an absent or foreign lot.
    - NegativeResultingQuantityError: apply_quantity with new_qty < 0.
    - StockConflictError: compare-and-swap lost the race (retryable).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update

from inventory_kernel.db.types import to_decimal
from inventory_kernel.domain.dtos import LotSnapshot
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    NegativeResultingQuantityError,
    ProductVariantNotFoundError,
    StockConflictError,
    StockItemNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import ProductVariant
from inventory_kernel.models.stock_lot import StockLot
from inventory_kernel.services.base import BaseService
from inventory_kernel.tenancy import TenantScope

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService[StockLot]):
    """
    Stock lot store access.

    Non-goals:
        - Does not write inventory log entries.  Every quantity change made
          here must be paired with one by InventoryLogService in the same
          transaction.
    """

    def receive_lot(
        self,
        scope: TenantScope,
        product_variant_id: UUID,
        quantity: int,
        unit_cost: Decimal,
        entry_date: datetime | None = None,
        expiration_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> StockLot:
        """
        Create a lot for a variant owned by the tenant.

        No log entry is written; initial_quantity is the baseline that the
        lot's log is reconciled against.

        Raises:
            ProductVariantNotFoundError: Variant absent or owned by another tenant.
            InvalidQuantityError: quantity not a non-negative int.
            ValueError: unit_cost negative.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantityError("quantity", quantity, "must be an integer")
        if quantity < 0:
            raise InvalidQuantityError("quantity", quantity, "cannot be negative")
        cost = to_decimal(unit_cost)
        if cost < 0:
            raise ValueError(f"unit_cost cannot be negative, got {cost}")

        owned = self.session.execute(
            scope.variant_ids().where(ProductVariant.id == product_variant_id)
        ).scalar_one_or_none()
        if owned is None:
            raise ProductVariantNotFoundError(str(product_variant_id))

        now = self.clock.now()
        lot = StockLot(
            product_variant_id=product_variant_id,
            quantity=quantity,
            initial_quantity=quantity,
            unit_cost=cost,
            entry_date=entry_date or now,
            expiration_date=expiration_date,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.session.add(lot)
        self.session.flush()

        logger.info("stock_lot_received", extra={
            "stock_item_id": str(lot.id),
            "product_variant_id": str(product_variant_id),
            "quantity": quantity,
            "actor_id": str(actor_id) if actor_id else None,
        })
        return lot

    def snapshot_lots(
        self,
        scope: TenantScope,
        product_variant_ids: Iterable[UUID],
        lock: bool = True,
    ) -> dict[UUID, list[LotSnapshot]]:
        """
        Read the positive lots of the given variants.

        Args:
            scope: Tenant the variants must belong to.
            product_variant_ids: Variants to read.
            lock: Take SELECT ... FOR UPDATE on the lot rows (PostgreSQL;
                ignored by SQLite, which serializes writers itself).

        Returns:
            Snapshots keyed by variant id.  Variants with no positive lot
            map to an empty list.
        """
        variant_ids = list(dict.fromkeys(product_variant_ids))
        snapshots: dict[UUID, list[LotSnapshot]] = {vid: [] for vid in variant_ids}
        if not variant_ids:
            return snapshots

        stmt = (
            scope.lots()
            .where(StockLot.product_variant_id.in_(variant_ids))
            .where(StockLot.quantity > 0)
            .order_by(StockLot.id)
        )
        if lock:
            stmt = stmt.with_for_update(of=StockLot)

        lots = self.session.execute(stmt).scalars().all()
        for lot in lots:
            snapshots[lot.product_variant_id].append(LotSnapshot.from_model(lot))

        logger.debug("stock_lots_snapshotted", extra={
            "variant_count": len(variant_ids),
            "lot_count": len(lots),
            "locked": lock,
        })
        return snapshots

    def get_lot(
        self,
        scope: TenantScope,
        stock_item_id: UUID,
        lock: bool = False,
    ) -> StockLot:
        """
        Tenant-scoped lot lookup.

        Raises:
            StockItemNotFoundError: Absent or owned by another tenant.
        """
        stmt = scope.lots().where(StockLot.id == stock_item_id)
        if lock:
            stmt = stmt.with_for_update(of=StockLot)
        lot = self.session.execute(stmt).scalar_one_or_none()
        if lot is None:
            raise StockItemNotFoundError(str(stock_item_id))
        return lot

    def apply_quantity(
        self,
        stock_item_id: UUID,
        expected_qty: int,
        new_qty: int,
        product_variant_id: UUID | None = None,
    ) -> int:
        """
        Conditionally move a lot from expected_qty to new_qty.

        Callers obtain stock_item_id from a tenant-scoped read in the same
        transaction.

        Returns:
            new_qty.

        Raises:
            NegativeResultingQuantityError: new_qty < 0; nothing is sent.
            StockConflictError: The lot no longer holds expected_qty.
        """
        if new_qty < 0:
            raise NegativeResultingQuantityError(
                str(stock_item_id), expected_qty, new_qty - expected_qty
            )

        result = self.session.execute(
            update(StockLot)
            .where(StockLot.id == stock_item_id)
            .where(StockLot.quantity == expected_qty)
            .values(quantity=new_qty, updated_at=self.clock.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("stock_quantity_conflict", extra={
                "stock_item_id": str(stock_item_id),
                "expected_quantity": expected_qty,
                "new_quantity": new_qty,
            })
            raise StockConflictError(
                str(stock_item_id),
                expected_qty,
                str(product_variant_id) if product_variant_id else None,
            )

        # Keep an already-loaded instance in step with the row
        lot = self.session.identity_map.get(
            self.session.identity_key(StockLot, stock_item_id)
        )
        if lot is not None:
            self.session.expire(lot, ["quantity", "updated_at"])

        logger.debug("stock_quantity_applied", extra={
            "stock_item_id": str(stock_item_id),
            "previous_quantity": expected_qty,
            "new_quantity": new_qty,
        })
        return new_qty
