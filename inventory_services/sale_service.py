"""
SaleService -- sale transaction orchestrator.

Responsibility:
    Turns a SaleRequest into a persisted Sale, its SaleItems, the lot
    decrements and the SALE inventory log entries, all inside the caller's
    unit of work.

Architecture position:
    Services -- orchestration over kernel services, selectors and the pure
    allocation engine.  Flush-only; InventoryLedger owns commit/rollback.

Invariants enforced:
    - Every referenced variant and client belongs to the requesting tenant.
    - For each request line, the allocated quantities sum to the requested
      quantity or nothing is written.
    - One SaleItem per allocation line, each bound to the lot it consumed;
      caller pricing is split so the items sum to the caller's figures.
    - Every lot decrement is a compare-and-swap against the snapshot read
      earlier in the same transaction, paired with exactly one SALE entry.

Failure modes:
    - EmptySaleError / InvalidQuantityError: malformed request.
    - UnknownClientError: client absent or owned by another tenant.
    - UnknownVariantsError: lists every missing variant id.
    - OutOfStockError / InsufficientStockError: propagated from the allocator.
    - StockConflictError: a lot changed between snapshot and decrement.
    - TransactionTimeoutError: the execution budget ran out between steps.

Design principles:
    1. Validate everything before writing anything.
    2. Allocation is pure; persistence replays the plan.
    3. The checkpoint callback is the only way the service learns about
       time budgets; it never reads the wall clock for that.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_engines.allocation import (
    AllocationPlan,
    AllocationRequest,
    FifoAllocator,
    validate_quantity,
)
from inventory_engines.line_split import split_line_pricing
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import SaleRequest, SaleWithItems
from inventory_kernel.exceptions import (
    EmptySaleError,
    UnknownClientError,
    UnknownVariantsError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.selectors.catalog_selector import CatalogSelector
from inventory_kernel.services.inventory_log_service import InventoryLogService
from inventory_kernel.services.stock_ledger import StockLedgerService
from inventory_kernel.tenancy import TenantScope

logger = get_logger("services.sale")


def _no_checkpoint(step: str) -> None:
    return None


class SaleService:
    """
    Orchestrates sale creation.

    Contract:
        create_sale either flushes a complete sale (header, items, lot
        decrements, log entries) into the caller's transaction or raises
        having left the caller to roll back.

    Non-goals:
        - Does NOT commit.
        - Does NOT compute prices; unit_price, discount and total are caller
          business data.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        lock_lots: bool = True,
        checkpoint: Callable[[str], None] | None = None,
        allocator: FifoAllocator | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._lock_lots = lock_lots
        self._checkpoint = checkpoint or _no_checkpoint
        self._allocator = allocator or FifoAllocator()
        self._stock = StockLedgerService(session, self._clock)
        self._logs = InventoryLogService(session, self._clock, self._stock)
        self._catalog = CatalogSelector(session)

    def allocate(
        self,
        company_id: UUID,
        requests: Sequence[AllocationRequest],
    ) -> AllocationPlan:
        """
        Read-only allocation preview for a tenant.

        Validates variant ownership, reads lots without locking and runs the
        allocator.  Nothing is written.

        Raises:
            UnknownVariantsError, OutOfStockError, InsufficientStockError.
        """
        scope = TenantScope(company_id)
        self._require_variants(scope, [r.product_variant_id for r in requests])
        lots = self._stock.snapshot_lots(
            scope, [r.product_variant_id for r in requests], lock=False
        )
        return self._allocator.allocate(requests=list(requests), lots=lots)

    def create_sale(
        self,
        company_id: UUID,
        user_id: UUID | None,
        request: SaleRequest,
    ) -> SaleWithItems:
        """
        Create a sale and consume stock for it.

        Preconditions: called inside an open unit of work.
        Postconditions: on return, the sale, its items, the lot decrements
            and the SALE log entries are flushed; nothing is committed.

        Returns:
            SaleWithItems DTO with one item per allocation line.
        """
        scope = TenantScope(company_id)

        # Step 0: request shape
        if not request.items:
            raise EmptySaleError()
        requests = [
            AllocationRequest(
                product_variant_id=line.product_variant_id,
                quantity=validate_quantity(f"items[{index}].quantity", line.quantity),
            )
            for index, line in enumerate(request.items)
        ]
        if request.client_id is not None and not self._catalog.client_exists(
            scope, request.client_id
        ):
            raise UnknownClientError(str(request.client_id))

        logger.info("sale_creation_started", extra={
            "line_count": len(requests),
            "client_id": str(request.client_id) if request.client_id else None,
        })

        # Step 1: tenant ownership of every variant
        variant_ids = [r.product_variant_id for r in requests]
        self._require_variants(scope, variant_ids)
        self._checkpoint("variants_validated")

        # Step 2: snapshot + allocate
        lots = self._stock.snapshot_lots(scope, variant_ids, lock=self._lock_lots)
        plan = self._allocator.allocate(requests=requests, lots=lots)
        self._checkpoint("allocated")

        # Steps 3 and 4: header and one item per allocation line
        now = self._clock.now()
        sale = Sale(
            company_id=company_id,
            client_id=request.client_id,
            user_id=user_id,
            sale_date=request.sale_date or now,
            status=request.status.value,
            payment_status=request.payment_status.value,
            payment_method=request.payment_method,
            total=request.total,
            discount=request.discount,
            note=request.note,
            created_at=now,
            updated_at=now,
        )
        line_no = 0
        for result in plan.results:
            line = request.items[result.request_index]
            priced = split_line_pricing(
                unit_price=line.unit_price,
                discount=line.discount,
                total=line.total,
                quantities=[a.qty_allocated for a in result.lines],
            )
            for allocation, price in zip(result.lines, priced):
                sale.items.append(SaleItem(
                    line_no=line_no,
                    product_variant_id=allocation.product_variant_id,
                    stock_item_id=allocation.stock_item_id,
                    quantity=allocation.qty_allocated,
                    unit_price=price.unit_price,
                    discount=price.discount,
                    total=price.total,
                    note=line.note,
                ))
                line_no += 1
        self._session.add(sale)
        self._session.flush()
        self._checkpoint("sale_persisted")

        # Step 5: decrement lots and write SALE entries
        with LogContext.bind(sale_id=str(sale.id)):
            for allocation in plan.lines:
                self._logs.record_sale_movement(
                    scope,
                    sale_id=sale.id,
                    stock_item_id=allocation.stock_item_id,
                    product_variant_id=allocation.product_variant_id,
                    qty_allocated=allocation.qty_allocated,
                    previous_qty=allocation.qty_previous,
                    user_id=user_id,
                )
            self._checkpoint("stock_decremented")

            logger.info("sale_created", extra={
                "item_count": len(sale.items),
                "units": plan.total_allocated,
                "total": str(sale.total),
            })

        return SaleWithItems.from_model(sale)

    def _require_variants(self, scope: TenantScope, variant_ids: list[UUID]) -> None:
        missing = self._catalog.missing_variant_ids(scope, variant_ids)
        if missing:
            logger.warning("sale_unknown_variants", extra={
                "missing_variant_ids": [str(v) for v in missing],
            })
            raise UnknownVariantsError([str(v) for v in missing])
