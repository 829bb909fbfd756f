"""
DTOs -- Immutable request and result objects for the ledger.

Responsibility:
    Defines the data structures that cross the ledger's external boundary:
    SaleRequest / SaleLineRequest (input) and
    SaleWithItems / SaleItemView / InventoryLogView / StockLotView /
    LotReconciliation (output).

Architecture position:
    Kernel > Domain -- zero I/O.  from_model() class methods are boundary
    converters invoked only from the service and facade layers.

Invariants enforced:
    - Output objects are frozen and built field by field.  Optional fields
      are always present and set to None when absent; nothing is stripped.
    - Monetary request fields are Decimal; floats are rejected.
    - Callers never receive ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.db.types import to_decimal
from inventory_kernel.domain.enums import InventoryLogType, PaymentStatus, SaleStatus

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_log import InventoryLogEntry
    from inventory_kernel.models.sale import Sale, SaleItem
    from inventory_kernel.models.stock_lot import StockLot


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaleLineRequest:
    """One requested line: a variant, a quantity and caller-supplied pricing."""

    product_variant_id: UUID
    quantity: int
    unit_price: Decimal
    total: Decimal
    discount: Decimal = Decimal("0")
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "total", to_decimal(self.total))
        object.__setattr__(self, "discount", to_decimal(self.discount))


@dataclass(frozen=True)
class SaleRequest:
    """Sale header fields plus its lines.  Pricing is caller business data."""

    items: tuple[SaleLineRequest, ...]
    total: Decimal
    client_id: UUID | None = None
    sale_date: datetime | None = None
    status: SaleStatus = SaleStatus.OPEN
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str | None = None
    discount: Decimal = Decimal("0")
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "total", to_decimal(self.total))
        object.__setattr__(self, "discount", to_decimal(self.discount))
        object.__setattr__(self, "status", SaleStatus(self.status))
        object.__setattr__(self, "payment_status", PaymentStatus(self.payment_status))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaleItemView:
    id: UUID
    sale_id: UUID
    product_variant_id: UUID
    stock_item_id: UUID | None
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal
    note: str | None

    @classmethod
    def from_model(cls, model: SaleItem) -> SaleItemView:
        return cls(
            id=model.id,
            sale_id=model.sale_id,
            product_variant_id=model.product_variant_id,
            stock_item_id=model.stock_item_id,
            quantity=model.quantity,
            unit_price=model.unit_price,
            discount=model.discount,
            total=model.total,
            note=model.note,
        )


@dataclass(frozen=True)
class SaleWithItems:
    """A persisted sale together with its line items, in allocation order."""

    id: UUID
    company_id: UUID
    client_id: UUID | None
    user_id: UUID | None
    sale_date: datetime
    status: SaleStatus
    payment_status: PaymentStatus
    payment_method: str | None
    total: Decimal
    discount: Decimal
    note: str | None
    created_at: datetime
    items: tuple[SaleItemView, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, model: Sale) -> SaleWithItems:
        """
        Create a SaleWithItems from a Sale ORM model.

        Args:
            model: Sale ORM model with its items relationship loaded.

        Returns:
            SaleWithItems DTO.
        """
        return cls(
            id=model.id,
            company_id=model.company_id,
            client_id=model.client_id,
            user_id=model.user_id,
            sale_date=model.sale_date,
            status=SaleStatus(model.status),
            payment_status=PaymentStatus(model.payment_status),
            payment_method=model.payment_method,
            total=model.total,
            discount=model.discount,
            note=model.note,
            created_at=model.created_at,
            items=tuple(SaleItemView.from_model(item) for item in model.items),
        )


@dataclass(frozen=True)
class InventoryLogView:
    id: UUID
    company_id: UUID
    stock_item_id: UUID
    type: InventoryLogType
    quantity_change: int
    previous_qty: int
    new_qty: int
    is_manual: bool
    is_reverted: bool
    source_id: str | None
    source_type: str | None
    user_id: UUID | None
    reverted_by_id: UUID | None
    reverted_at: datetime | None
    note: str | None
    created_at: datetime

    @property
    def signed_change(self) -> int:
        return self.new_qty - self.previous_qty

    @classmethod
    def from_model(cls, model: InventoryLogEntry) -> InventoryLogView:
        return cls(
            id=model.id,
            company_id=model.company_id,
            stock_item_id=model.stock_item_id,
            type=InventoryLogType(model.type),
            quantity_change=model.quantity_change,
            previous_qty=model.previous_qty,
            new_qty=model.new_qty,
            is_manual=model.is_manual,
            is_reverted=model.is_reverted,
            source_id=model.source_id,
            source_type=model.source_type,
            user_id=model.user_id,
            reverted_by_id=model.reverted_by_id,
            reverted_at=model.reverted_at,
            note=model.note,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class StockLotView:
    id: UUID
    product_variant_id: UUID
    quantity: int
    initial_quantity: int
    unit_cost: Decimal
    entry_date: datetime
    expiration_date: date | None
    is_active: bool

    @classmethod
    def from_model(cls, model: StockLot) -> StockLotView:
        return cls(
            id=model.id,
            product_variant_id=model.product_variant_id,
            quantity=model.quantity,
            initial_quantity=model.initial_quantity,
            unit_cost=model.unit_cost,
            entry_date=model.entry_date,
            expiration_date=model.expiration_date,
            is_active=model.is_active,
        )


@dataclass(frozen=True, slots=True)
class LotSnapshot:
    """
    Point-in-time copy of a lot, as read inside the allocating transaction.

    The allocator works only on snapshots; the later decrement is checked
    against ``quantity`` with a compare-and-swap.
    """

    id: UUID
    product_variant_id: UUID
    quantity: int
    unit_cost: Decimal
    entry_date: datetime
    expiration_date: date | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: StockLot) -> LotSnapshot:
        return cls(
            id=model.id,
            product_variant_id=model.product_variant_id,
            quantity=model.quantity,
            unit_cost=model.unit_cost,
            entry_date=model.entry_date,
            expiration_date=model.expiration_date,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class LotReconciliation:
    """
    Result of replaying a lot's log against its initial quantity.

    expected_quantity = initial_quantity + sum(signed_change) over the lot's
    non-reverted entries.  is_balanced is True when that equals the stored
    quantity.
    """

    stock_item_id: UUID
    initial_quantity: int
    current_quantity: int
    expected_quantity: int
    entry_count: int
    reverted_count: int

    @property
    def is_balanced(self) -> bool:
        return self.expected_quantity == self.current_quantity

    @property
    def drift(self) -> int:
        return self.current_quantity - self.expected_quantity
