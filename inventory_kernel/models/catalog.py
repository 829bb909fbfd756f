"""
Module: inventory_kernel.models.catalog
Responsibility: Minimal reference tables for the tenant chain
    ProductVariant -> Product -> Company, plus Client.  These exist so that
    tenant ownership can be resolved in SQL; catalog CRUD lives outside the
    ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every ProductVariant belongs to exactly one Product, and every Product
      to exactly one Company.  A variant's tenant is therefore derivable by
      joining upward; no denormalized company_id is stored on the variant.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString


class Company(Base):
    """A tenant.  All ledger rows are owned, directly or transitively, by one."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Company {self.id}: {self.name}>"


class Product(Base):
    __tablename__ = "products"

    __table_args__ = (Index("idx_product_company", "company_id"),)

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    variants: Mapped[list["ProductVariant"]] = relationship(
        back_populates="product",
    )


class ProductVariant(Base):
    """A sellable SKU.  Stock lots and sale items point here."""

    __tablename__ = "product_variants"

    __table_args__ = (Index("idx_variant_product", "product_id"),)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    product: Mapped["Product"] = relationship(back_populates="variants")

    def __repr__(self) -> str:
        return f"<ProductVariant {self.id} sku={self.sku}>"


class Client(Base):
    __tablename__ = "clients"

    __table_args__ = (Index("idx_client_company", "company_id"),)

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
