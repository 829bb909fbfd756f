"""
Property-based tests for allocation and the lot/log reconciliation invariant.

Properties checked:
- A successful plan covers every request exactly and never takes more from
  a lot than its snapshot held.
- Allocation succeeds exactly when the variant's stock covers the demand.
- Lots are drained in FIFO order: a later lot is touched only once every
  earlier lot is empty.
- After any sequence of adjustments and reversals, initial quantity plus the
  non-reverted log equals the stored lot quantity.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_engines.allocation import AllocationRequest, FifoAllocator, order_lots
from inventory_kernel.domain.dtos import LotSnapshot
from inventory_kernel.domain.enums import InventoryLogType
from inventory_kernel.exceptions import (
    InsufficientStockError,
    NegativeResultingQuantityError,
    OutOfStockError,
)
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.services.inventory_log_service import InventoryLogService

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

lot_specs = st.lists(
    st.tuples(
        st.integers(min_value=0, max_value=50),
        st.one_of(st.none(), st.integers(min_value=0, max_value=365)),
        st.integers(min_value=0, max_value=30),
    ),
    min_size=0,
    max_size=8,
)


def _snapshots(variant_id, specs) -> list[LotSnapshot]:
    return [
        LotSnapshot(
            id=uuid4(),
            product_variant_id=variant_id,
            quantity=qty,
            unit_cost=Decimal("1"),
            entry_date=BASE_TIME + timedelta(days=entry_days),
            expiration_date=None if exp_days is None else date(2025, 1, 1) + timedelta(days=exp_days),
            created_at=BASE_TIME,
        )
        for qty, exp_days, entry_days in specs
    ]


class TestAllocationProperties:
    @given(specs=lot_specs, demands=st.lists(st.integers(1, 60), min_size=1, max_size=4))
    @settings(max_examples=200, deadline=None)
    def test_plan_conserves_units(self, specs, demands):
        variant_id = uuid4()
        lots = _snapshots(variant_id, specs)
        on_hand = sum(lot.quantity for lot in lots)
        requests = [AllocationRequest(variant_id, d) for d in demands]

        try:
            plan = FifoAllocator().allocate(requests=requests, lots={variant_id: lots})
        except (OutOfStockError, InsufficientStockError):
            assert sum(demands) > on_hand
            return

        assert sum(demands) <= on_hand
        assert [r.allocated for r in plan.results] == demands
        taken: dict = {}
        for line in plan.lines:
            assert line.qty_allocated > 0
            taken[line.stock_item_id] = taken.get(line.stock_item_id, 0) + line.qty_allocated
        snapshot_qty = {lot.id: lot.quantity for lot in lots}
        for lot_id, units in taken.items():
            assert units <= snapshot_qty[lot_id]

    @given(specs=lot_specs, demand=st.integers(1, 100))
    @settings(max_examples=200, deadline=None)
    def test_lots_drained_in_fifo_order(self, specs, demand):
        variant_id = uuid4()
        lots = _snapshots(variant_id, specs)
        try:
            plan = FifoAllocator().allocate(
                requests=[AllocationRequest(variant_id, demand)],
                lots={variant_id: lots},
            )
        except (OutOfStockError, InsufficientStockError):
            return

        ordered_ids = [lot.id for lot in order_lots(lots)]
        used = [line.stock_item_id for line in plan.lines]
        assert used == ordered_ids[: len(used)]
        # every lot but the last one used is emptied
        for line in plan.lines[:-1]:
            assert line.qty_after == 0


adjustments = st.lists(
    st.tuples(
        st.sampled_from(["adjust", "revert"]),
        st.integers(min_value=-20, max_value=20).filter(lambda v: v != 0),
    ),
    min_size=1,
    max_size=15,
)


class TestReconciliationProperty:
    @given(initial=st.integers(0, 30), ops=adjustments)
    @settings(
        max_examples=50,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_log_replays_to_current_quantity(
        self, session, deterministic_clock, tenant, make_lot, initial, ops
    ):
        lot = make_lot(tenant.variant_id, initial)
        service = InventoryLogService(session, deterministic_clock)
        live_entries = []

        for op, change in ops:
            try:
                if op == "revert" and live_entries:
                    service.revert(tenant.scope, live_entries.pop(0), None)
                else:
                    log_type = InventoryLogType.ENTRY if change > 0 else InventoryLogType.LOSS
                    entry = service.apply_manual(tenant.scope, lot.id, log_type, change)
                    live_entries.append(entry.id)
            except NegativeResultingQuantityError:
                continue

        report = StockSelector(session).reconcile_lot(tenant.scope, lot.id)
        assert report.is_balanced
        assert report.current_quantity >= 0
