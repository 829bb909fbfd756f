"""
InventoryLedger -- the external interface of the stock ledger.

Responsibility:
    One method per ledger operation.  Each call binds the tenant and actor
    into the log context, opens exactly one unit of work, runs the kernel
    service or selector inside it, and returns frozen DTOs.

Architecture position:
    Services -- the transaction owner.  The HTTP layer (out of scope) calls
    this class; nothing below it commits.

Invariants enforced:
    - All-or-nothing: every write operation commits once at the end or rolls
      back entirely.
    - Tenant isolation: the company id is mandatory on every call and is
      turned into a TenantScope before any query.
    - Callers never receive ORM entities.

Failure modes:
    - Any InventoryKernelError raised inside the unit of work, after
      rollback.
    - TransactionTimeoutError when the budget is exceeded.

Usage:
    ledger = InventoryLedger.from_config(get_active_config(), create_schema=True)
    sale = ledger.create_sale(company_id, actor_id, SaleRequest(...))
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Generator
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerConfig
from inventory_engines.allocation import AllocationPlan, AllocationRequest
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.db.unit_of_work import TransactionBudget, UnitOfWork, unit_of_work
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    InventoryLogView,
    LotReconciliation,
    SaleRequest,
    SaleWithItems,
    StockLotView,
)
from inventory_kernel.domain.enums import InventoryLogType
from inventory_kernel.logging_config import LogContext, configure_logging, get_logger
from inventory_kernel.selectors.inventory_log_selector import InventoryLogSelector
from inventory_kernel.selectors.sale_selector import SaleSelector
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.services.inventory_log_service import InventoryLogService
from inventory_kernel.services.stock_ledger import StockLedgerService
from inventory_kernel.tenancy import TenantScope
from inventory_services.sale_service import SaleService

logger = get_logger("services.ledger")


def _optional_str(value: object | None) -> str | None:
    return str(value) if value is not None else None


class InventoryLedger:
    """
    Facade over the kernel services, one unit of work per call.

    Contract:
        Thread-safe as long as session_factory is: each call opens its own
        session and closes it before returning.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        budget: TransactionBudget | None = None,
        clock: Clock | None = None,
        lock_lots: bool = True,
    ):
        self._session_factory = session_factory
        self._budget = budget or TransactionBudget()
        self._clock = clock or SystemClock()
        self._lock_lots = lock_lots

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> InventoryLedger:
        """
        Wire logging, engine, immutability listeners and budget from config.

        The pool wait never exceeds the transaction's max wait, so a pool
        timeout surfaces as TransactionTimeoutError(phase="acquire").
        """
        configure_logging(level=config.logging.level)
        tx = config.transaction
        db = config.database
        pool_timeout = min(db.pool_timeout, max(1, math.ceil(tx.max_wait_ms / 1000)))
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=db.pool_recycle,
            isolation_level=tx.isolation_level,
        )
        if create_schema:
            create_tables()
        register_immutability_listeners()

        logger.info("ledger_initialized", extra={
            "config_id": config.config_id,
            "checksum": config.checksum,
            "lock_lots": tx.lock_lots,
        })
        return cls(
            get_session_factory(),
            budget=TransactionBudget(
                max_wait_ms=tx.max_wait_ms,
                timeout_ms=tx.timeout_ms,
                isolation_level=tx.isolation_level,
            ),
            clock=clock,
            lock_lots=tx.lock_lots,
        )

    @contextmanager
    def _operation(
        self,
        name: str,
        company_id: UUID,
        actor_id: UUID | None = None,
    ) -> Generator[tuple[UnitOfWork, TenantScope], None, None]:
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            company_id=str(company_id),
            actor_id=_optional_str(actor_id),
        ):
            scope = TenantScope(company_id)
            logger.debug("ledger_operation_started", extra={"operation": name})
            with unit_of_work(self._session_factory, self._budget, self._clock) as uow:
                yield uow, scope

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_sale(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        request: SaleRequest,
    ) -> SaleWithItems:
        """
        Validate, allocate and persist a sale atomically.

        Raises:
            EmptySaleError, InvalidQuantityError, UnknownClientError,
            UnknownVariantsError, OutOfStockError, InsufficientStockError,
            StockConflictError, TransactionTimeoutError.
        """
        with self._operation("create_sale", company_id, actor_id) as (uow, _scope):
            service = SaleService(
                uow.session,
                clock=self._clock,
                lock_lots=self._lock_lots,
                checkpoint=uow.checkpoint,
            )
            return service.create_sale(company_id, actor_id, request)

    def create_manual_log(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        stock_item_id: UUID,
        log_type: InventoryLogType | str,
        quantity_change: int,
        note: str | None = None,
        source_id: str | None = None,
        source_type: str | None = None,
        is_manual: bool = True,
    ) -> InventoryLogView:
        """
        Apply a signed quantity delta to one lot and record it.

        Raises:
            InvalidQuantityError, StockItemNotFoundError,
            NegativeResultingQuantityError, StockConflictError.
        """
        with self._operation("create_manual_log", company_id, actor_id) as (uow, scope):
            entry = InventoryLogService(uow.session, self._clock).apply_manual(
                scope,
                stock_item_id,
                InventoryLogType(log_type),
                quantity_change,
                source_id=source_id,
                source_type=source_type,
                note=note,
                user_id=actor_id,
                is_manual=is_manual,
            )
            return InventoryLogView.from_model(entry)

    def revert_log(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        log_id: UUID,
    ) -> InventoryLogView:
        """
        Undo one log entry's effect and mark it reverted.

        Raises:
            InventoryLogNotFoundError, AlreadyRevertedError,
            StockItemNotFoundError, NegativeResultingQuantityError.
        """
        with self._operation("revert_log", company_id, actor_id) as (uow, scope):
            with LogContext.bind(log_id=str(log_id)):
                entry = InventoryLogService(uow.session, self._clock).revert(
                    scope, log_id, actor_id
                )
                return InventoryLogView.from_model(entry)

    def receive_lot(
        self,
        company_id: UUID,
        actor_id: UUID | None,
        product_variant_id: UUID,
        quantity: int,
        unit_cost: Decimal,
        entry_date: datetime | None = None,
        expiration_date: date | None = None,
    ) -> StockLotView:
        """Register inbound stock as a new lot."""
        with self._operation("receive_lot", company_id, actor_id) as (uow, scope):
            lot = StockLedgerService(uow.session, self._clock).receive_lot(
                scope,
                product_variant_id,
                quantity,
                unit_cost,
                entry_date=entry_date,
                expiration_date=expiration_date,
                actor_id=actor_id,
            )
            return StockLotView.from_model(lot)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def allocate(
        self,
        company_id: UUID,
        requests: Sequence[AllocationRequest],
    ) -> AllocationPlan:
        """Preview the FIFO allocation for requests without writing anything."""
        with self._operation("allocate", company_id) as (uow, _scope):
            return SaleService(uow.session, clock=self._clock).allocate(
                company_id, requests
            )

    def list_logs(
        self,
        company_id: UUID,
        stock_item_id: UUID | None = None,
        log_type: InventoryLogType | str | None = None,
    ) -> list[InventoryLogView]:
        with self._operation("list_logs", company_id) as (uow, scope):
            return InventoryLogSelector(uow.session).list_logs(
                scope, stock_item_id=stock_item_id, log_type=log_type
            )

    def get_log(self, company_id: UUID, log_id: UUID) -> InventoryLogView:
        with self._operation("get_log", company_id) as (uow, scope):
            return InventoryLogSelector(uow.session).get_log(scope, log_id)

    def get_sale(self, company_id: UUID, sale_id: UUID) -> SaleWithItems:
        with self._operation("get_sale", company_id) as (uow, scope):
            return SaleSelector(uow.session).get_sale(scope, sale_id)

    def list_sales(self, company_id: UUID) -> list[SaleWithItems]:
        with self._operation("list_sales", company_id) as (uow, scope):
            return SaleSelector(uow.session).list_sales(scope)

    def list_lots(
        self,
        company_id: UUID,
        product_variant_id: UUID | None = None,
    ) -> list[StockLotView]:
        with self._operation("list_lots", company_id) as (uow, scope):
            return StockSelector(uow.session).list_lots(
                scope, product_variant_id=product_variant_id
            )

    def reconcile_lot(self, company_id: UUID, stock_item_id: UUID) -> LotReconciliation:
        """Check initial_quantity + non-reverted log == current quantity for one lot."""
        with self._operation("reconcile_lot", company_id) as (uow, scope):
            return StockSelector(uow.session).reconcile_lot(scope, stock_item_id)
