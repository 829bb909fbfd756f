"""
Module: inventory_kernel.models.inventory_log
Responsibility: ORM persistence for the append-only inventory audit trail.
    Every change to a stock lot's quantity has exactly one entry here.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only.  After insert the only permitted change is the reversal
      marker: is_reverted False -> True together with reverted_by_id and
      reverted_at, once.  Enforced by ORM listeners in db/immutability.py.
    - previous_qty and new_qty are the lot quantity immediately before and
      after the movement, captured under the same transaction.
    - signed_change (new_qty - previous_qty) is the authoritative effect of
      the entry.  Manual entries store the signed delta in quantity_change;
      SALE entries store the positive magnitude removed.

Failure modes:
    - ImmutabilityViolationError on any other update and on delete.

Audit relevance:
    For every lot, initial_quantity + sum(signed_change of non-reverted
    entries) equals the current quantity.  StockSelector.reconcile_lot checks
    exactly that.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class InventoryLogEntry(Base):
    """
    One stock movement (table ``inventory_logs``).

    Contract:
        Written only by InventoryLogService in the transaction that changed
        the lot.  Never deleted.
    """

    __tablename__ = "inventory_logs"

    __table_args__ = (
        # Query: tenant listing, newest first
        Index("idx_inventory_log_company_created", "company_id", "created_at"),
        # Query: per-lot history / reconciliation
        Index("idx_inventory_log_stock_item", "stock_item_id"),
        # Query: entries produced by a sale
        Index("idx_inventory_log_source", "source_type", "source_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    stock_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity_change: Mapped[int] = mapped_column(BigInteger, nullable=False)

    previous_qty: Mapped[int] = mapped_column(BigInteger, nullable=False)

    new_qty: Mapped[int] = mapped_column(BigInteger, nullable=False)

    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_reverted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reverted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reverted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    note: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    @property
    def signed_change(self) -> int:
        """Effect of this entry on the lot quantity."""
        return self.new_qty - self.previous_qty

    def __repr__(self) -> str:
        return (
            f"<InventoryLogEntry {self.id} {self.type} "
            f"{self.previous_qty}->{self.new_qty} reverted={self.is_reverted}>"
        )
