"""
Module: inventory_engines.allocation
Responsibility:
    Compute a FIFO stock allocation plan: given requested quantities per
    product variant and a snapshot of that variant's lots, decide how many
    units to take from which lot.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only inventory_kernel domain DTOs, exceptions and logging.

Invariants enforced:
    - Lot order is a total order: expiration ascending with lots that never
      expire last, then entry date, then creation timestamp, then id.
      Identical snapshots therefore always produce identical plans.
    - Each request line is either covered exactly or the whole allocation
      fails; a plan is never partial.
    - Several request lines for the same variant draw from one working copy
      of the snapshot in request order, so no unit is allocated twice.
    - Purity: no clock access, no database access.

Failure modes:
    - OutOfStockError when no lot with positive quantity remains for a line's
      variant.
    - InsufficientStockError(requested, available) when the remaining lots
      cannot cover the line.
    - InvalidQuantityError for a non-integer or non-positive request quantity.

Usage:
    from inventory_engines.allocation import AllocationRequest, FifoAllocator

    plan = FifoAllocator().allocate(
        requests=[AllocationRequest(product_variant_id=variant_id, quantity=8)],
        lots={variant_id: [lot_a, lot_b]},
    )
    for line in plan.lines:
        ...
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import LotSnapshot
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    OutOfStockError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


def validate_quantity(field: str, value: object) -> int:
    """Return value if it is a positive int, else raise InvalidQuantityError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(field, value, "must be an integer")
    if value <= 0:
        raise InvalidQuantityError(field, value, "must be greater than zero")
    return value


@dataclass(frozen=True, slots=True)
class AllocationRequest:
    """A requested quantity of one variant."""

    product_variant_id: UUID
    quantity: int

    def __post_init__(self) -> None:
        validate_quantity("quantity", self.quantity)


@dataclass(frozen=True, slots=True)
class AllocationLine:
    """
    Units taken from one lot.

    Guarantees:
        - qty_allocated > 0
        - qty_previous is the lot quantity before this take, after any
          earlier lines of the same plan touched the lot.
    """

    stock_item_id: UUID
    product_variant_id: UUID
    qty_allocated: int
    qty_previous: int
    unit_cost: Decimal

    @property
    def qty_after(self) -> int:
        return self.qty_previous - self.qty_allocated


@dataclass(frozen=True)
class AllocationResult:
    """The lines covering one request, in consumption order."""

    request_index: int
    product_variant_id: UUID
    requested: int
    lines: tuple[AllocationLine, ...]

    @property
    def allocated(self) -> int:
        return sum(line.qty_allocated for line in self.lines)


@dataclass(frozen=True)
class AllocationPlan:
    """Complete allocation for a sale, one result per request line."""

    results: tuple[AllocationResult, ...]

    @property
    def lines(self) -> tuple[AllocationLine, ...]:
        """All allocation lines, request order then consumption order."""
        return tuple(line for result in self.results for line in result.lines)

    @property
    def total_allocated(self) -> int:
        return sum(result.allocated for result in self.results)

    def for_variant(self, product_variant_id: UUID) -> tuple[AllocationLine, ...]:
        return tuple(
            line for line in self.lines if line.product_variant_id == product_variant_id
        )


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def fifo_sort_key(lot: LotSnapshot) -> tuple:
    """Sort key implementing expiration-first FIFO with a total order."""
    return (
        lot.expiration_date is None,
        lot.expiration_date or date.max,
        _as_utc(lot.entry_date),
        _as_utc(lot.created_at),
        str(lot.id),
    )


def order_lots(lots: Sequence[LotSnapshot]) -> list[LotSnapshot]:
    """Lots with positive quantity, in consumption order."""
    return sorted((lot for lot in lots if lot.quantity > 0), key=fifo_sort_key)


class FifoAllocator:
    """
    Greedy FIFO allocator over lot snapshots.

    Contract:
        Pure function of (requests, lots).  No I/O.
    Guarantees:
        - sum(qty_allocated) for a request equals its quantity.
        - No lot is allocated beyond its snapshot quantity across the plan.
    Non-goals:
        - Does not decrement anything.  The caller replays the plan against
          the store with conditional updates.
    """

    @traced_engine("fifo_allocation", "1.0", fingerprint_fields=("requests", "lots"))
    def allocate(
        self,
        *,
        requests: Sequence[AllocationRequest],
        lots: Mapping[UUID, Sequence[LotSnapshot]],
    ) -> AllocationPlan:
        """
        Allocate every request against the lots of its variant.

        Args:
            requests: Request lines, in caller order.
            lots: Snapshot lots keyed by product variant id.

        Returns:
            AllocationPlan with one AllocationResult per request.

        Raises:
            OutOfStockError: No positive lot left for a request's variant.
            InsufficientStockError: Remaining lots cannot cover a request.
        """
        logger.info("allocation_started", extra={
            "request_count": len(requests),
            "variant_count": len({r.product_variant_id for r in requests}),
        })

        # Working copy per variant: ordered lots and their remaining quantity
        ordered: dict[UUID, list[LotSnapshot]] = {}
        remaining_by_lot: dict[UUID, int] = {}
        results: list[AllocationResult] = []

        for index, request in enumerate(requests):
            variant_id = request.product_variant_id
            if variant_id not in ordered:
                ordered[variant_id] = order_lots(lots.get(variant_id, ()))
                for lot in ordered[variant_id]:
                    remaining_by_lot[lot.id] = lot.quantity

            candidates = [
                lot for lot in ordered[variant_id] if remaining_by_lot[lot.id] > 0
            ]
            if not candidates:
                logger.warning("allocation_out_of_stock", extra={
                    "product_variant_id": str(variant_id),
                    "requested": request.quantity,
                })
                raise OutOfStockError(str(variant_id))

            available = sum(remaining_by_lot[lot.id] for lot in candidates)
            if available < request.quantity:
                logger.warning("allocation_insufficient_stock", extra={
                    "product_variant_id": str(variant_id),
                    "requested": request.quantity,
                    "available": available,
                })
                raise InsufficientStockError(
                    str(variant_id), request.quantity, available
                )

            lines: list[AllocationLine] = []
            still_needed = request.quantity
            for lot in candidates:
                if still_needed <= 0:
                    break
                on_hand = remaining_by_lot[lot.id]
                take = min(still_needed, on_hand)
                lines.append(AllocationLine(
                    stock_item_id=lot.id,
                    product_variant_id=variant_id,
                    qty_allocated=take,
                    qty_previous=on_hand,
                    unit_cost=lot.unit_cost,
                ))
                remaining_by_lot[lot.id] = on_hand - take
                still_needed -= take
                logger.debug("lot_allocated", extra={
                    "stock_item_id": str(lot.id),
                    "qty_allocated": take,
                    "qty_previous": on_hand,
                })

            results.append(AllocationResult(
                request_index=index,
                product_variant_id=variant_id,
                requested=request.quantity,
                lines=tuple(lines),
            ))

        plan = AllocationPlan(results=tuple(results))
        logger.info("allocation_completed", extra={
            "line_count": len(plan.lines),
            "total_allocated": plan.total_allocated,
        })
        return plan


def group_lots(lots: Sequence[LotSnapshot]) -> dict[UUID, list[LotSnapshot]]:
    """Key a flat list of snapshots by product variant id."""
    grouped: dict[UUID, list[LotSnapshot]] = {}
    for lot in lots:
        grouped.setdefault(lot.product_variant_id, []).append(lot)
    return grouped
