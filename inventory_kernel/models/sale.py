"""
Module: inventory_kernel.models.sale
Responsibility: ORM persistence for sales and their line items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A Sale and all of its SaleItems are written in the same transaction as
      the stock decrements and SALE log entries they caused.
    - SaleItem rows are immutable after insert (ORM listener).
    - On a Sale only status, payment_status and updated_at may change.
    - Each SaleItem is bound to the stock lot it consumed (stock_item_id), so
      a line split across lots yields one SaleItem per lot.

Audit relevance:
    SALE inventory log entries carry source_id = Sale.id, so a sale can be
    traced to every lot movement it caused.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.domain.enums import PaymentStatus, SaleStatus


class Sale(TrackedBase):
    """
    A sale header.

    Guarantees:
        - items are loaded with the sale (selectin) in insertion order of
          allocation lines.
    """

    __tablename__ = "sales"

    __table_args__ = (
        Index("idx_sale_company_date", "company_id", "sale_date"),
        Index("idx_sale_client", "client_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=True,
    )

    # Acting user; users are managed outside the ledger
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    sale_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SaleStatus.OPEN.value,
    )

    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
    )

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    discount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    note: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    items: Mapped[list["SaleItem"]] = relationship(
        back_populates="sale",
        lazy="selectin",
        order_by="SaleItem.line_no",
    )

    def __repr__(self) -> str:
        return f"<Sale {self.id} status={self.status} total={self.total}>"


class SaleItem(Base):
    """One allocated line of a sale, bound to the lot it drew from."""

    __tablename__ = "sale_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_item_quantity_positive"),
        Index("idx_sale_item_sale", "sale_id"),
        Index("idx_sale_item_stock_item", "stock_item_id"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales.id"),
        nullable=False,
    )

    # Position within the sale, preserves allocation order on reload
    line_no: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_variant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("product_variants.id"),
        nullable=False,
    )

    stock_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=True,
    )

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    discount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    note: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    sale: Mapped["Sale"] = relationship(back_populates="items")
