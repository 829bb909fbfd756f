"""
Module: inventory_kernel.models.stock_lot
Responsibility: ORM persistence for stock lots.  Each lot is a discrete batch
    of one product variant received at a unit cost, with an optional
    expiration date that drives FIFO allocation order.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - quantity >= 0 at every commit (CHECK constraint plus service-level
      validation before every write).
    - initial_quantity is frozen at creation.  Together with the non-reverted
      inventory log entries it reconstructs the current quantity.
    - Lots are never deleted; an exhausted lot stays at quantity 0.

Failure modes:
    - IntegrityError if a raw write violates ck_stock_item_quantity_non_negative.
    - ImmutabilityViolationError (ORM listener) on delete or on a change to
      initial_quantity / product_variant_id.

Audit relevance:
    The quantity column is only ever changed by a conditional update in
    StockLedgerService.apply_quantity, always paired with an inventory log
    entry written in the same transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.models.catalog import ProductVariant


class StockLot(TrackedBase):
    """
    Persistent storage for a stock lot (table ``stock_items``).

    Contract:
        quantity is the live on-hand count; initial_quantity is the count at
        receipt and never changes.

    Guarantees:
        - (product_variant_id, expiration_date) index supports the FIFO scan.
        - quantity can never be stored negative.

    Non-goals:
        - No tenant column: ownership is derived through the variant.
    """

    __tablename__ = "stock_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_item_quantity_non_negative"),
        CheckConstraint(
            "initial_quantity >= 0",
            name="ck_stock_item_initial_quantity_non_negative",
        ),
        # Query: FIFO scan of lots for a variant
        Index("idx_stock_item_variant_expiration", "product_variant_id", "expiration_date"),
    )

    product_variant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("product_variants.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Frozen at receipt
    initial_quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    entry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    expiration_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    product_variant: Mapped["ProductVariant"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<StockLot {self.id}: variant={self.product_variant_id} "
            f"qty={self.quantity} exp={self.expiration_date}>"
        )
