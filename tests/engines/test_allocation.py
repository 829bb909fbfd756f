"""
Tests for the FIFO allocation engine.

The allocator is pure: every test builds LotSnapshot objects by hand and
checks the plan (or the rejection) it returns.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from inventory_engines.allocation import (
    AllocationRequest,
    FifoAllocator,
    fifo_sort_key,
    group_lots,
    order_lots,
    validate_quantity,
)
from inventory_kernel.domain.dtos import LotSnapshot
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    OutOfStockError,
)

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def _lot(
    variant_id: UUID,
    quantity: int,
    *,
    expiration: date | None = None,
    entry_offset_days: int = 0,
    created_offset_seconds: int = 0,
    lot_id: UUID | None = None,
    unit_cost: Decimal = Decimal("1.00"),
) -> LotSnapshot:
    return LotSnapshot(
        id=lot_id or uuid4(),
        product_variant_id=variant_id,
        quantity=quantity,
        unit_cost=unit_cost,
        entry_date=BASE_TIME + timedelta(days=entry_offset_days),
        expiration_date=expiration,
        created_at=BASE_TIME + timedelta(seconds=created_offset_seconds),
    )


@pytest.fixture
def allocator():
    return FifoAllocator()


@pytest.fixture
def variant_id():
    return uuid4()


class TestFifoOrdering:
    """Lots are consumed in expiration-first FIFO order."""

    def test_earliest_expiration_consumed_first(self, allocator, variant_id):
        lot_a = _lot(variant_id, 5, expiration=date(2025, 1, 1))
        lot_b = _lot(variant_id, 10, expiration=date(2025, 6, 1))

        plan = allocator.allocate(
            requests=[AllocationRequest(variant_id, 8)],
            lots={variant_id: [lot_b, lot_a]},
        )

        assert [(l.stock_item_id, l.qty_allocated, l.qty_previous) for l in plan.lines] == [
            (lot_a.id, 5, 5),
            (lot_b.id, 3, 10),
        ]
        assert plan.lines[0].qty_after == 0
        assert plan.lines[1].qty_after == 7
        assert plan.total_allocated == 8

    def test_lots_without_expiration_come_last(self, allocator, variant_id):
        never = _lot(variant_id, 10, expiration=None, entry_offset_days=-30)
        later = _lot(variant_id, 10, expiration=date(2030, 1, 1))

        plan = allocator.allocate(
            requests=[AllocationRequest(variant_id, 4)],
            lots={variant_id: [never, later]},
        )

        assert [l.stock_item_id for l in plan.lines] == [later.id]

    def test_same_expiration_falls_back_to_entry_date(self, allocator, variant_id):
        exp = date(2025, 1, 1)
        newer = _lot(variant_id, 3, expiration=exp, entry_offset_days=5)
        older = _lot(variant_id, 3, expiration=exp, entry_offset_days=1)

        plan = allocator.allocate(
            requests=[AllocationRequest(variant_id, 4)],
            lots={variant_id: [newer, older]},
        )

        assert [l.stock_item_id for l in plan.lines] == [older.id, newer.id]

    def test_full_tie_broken_by_created_at_then_id(self, variant_id):
        first = _lot(variant_id, 1, created_offset_seconds=1)
        second = _lot(variant_id, 1, created_offset_seconds=2)
        low_id = _lot(variant_id, 1, created_offset_seconds=3,
                      lot_id=UUID("00000000-0000-0000-0000-000000000001"))
        high_id = _lot(variant_id, 1, created_offset_seconds=3,
                       lot_id=UUID("ffffffff-0000-0000-0000-000000000001"))

        ordered = order_lots([high_id, second, low_id, first])

        assert [l.id for l in ordered] == [first.id, second.id, low_id.id, high_id.id]

    def test_naive_entry_dates_are_treated_as_utc(self, variant_id):
        aware = _lot(variant_id, 1, entry_offset_days=1)
        naive = LotSnapshot(
            id=uuid4(),
            product_variant_id=variant_id,
            quantity=1,
            unit_cost=Decimal("1"),
            entry_date=BASE_TIME.replace(tzinfo=None),
        )

        assert fifo_sort_key(naive) < fifo_sort_key(aware)

    def test_zero_quantity_lots_are_skipped(self, allocator, variant_id):
        empty = _lot(variant_id, 0, expiration=date(2024, 1, 1))
        full = _lot(variant_id, 5, expiration=date(2026, 1, 1))

        plan = allocator.allocate(
            requests=[AllocationRequest(variant_id, 5)],
            lots={variant_id: [empty, full]},
        )

        assert [l.stock_item_id for l in plan.lines] == [full.id]


class TestAllocationRejections:
    """Either every line is covered or nothing is allocated."""

    def test_insufficient_stock_reports_missing_units(self, allocator, variant_id):
        lots = [_lot(variant_id, 5), _lot(variant_id, 5, entry_offset_days=1)]

        with pytest.raises(InsufficientStockError) as exc_info:
            allocator.allocate(
                requests=[AllocationRequest(variant_id, 15)],
                lots={variant_id: lots},
            )

        err = exc_info.value
        assert err.code == "INSUFFICIENT_STOCK"
        assert err.product_variant_id == str(variant_id)
        assert err.requested == 15
        assert err.available == 10
        assert err.missing == 5
        assert "Missing 5 units" in str(err)

    def test_no_positive_lot_is_out_of_stock(self, allocator, variant_id):
        with pytest.raises(OutOfStockError) as exc_info:
            allocator.allocate(
                requests=[AllocationRequest(variant_id, 1)],
                lots={variant_id: [_lot(variant_id, 0)]},
            )
        assert exc_info.value.product_variant_id == str(variant_id)

    def test_variant_missing_from_snapshot_is_out_of_stock(self, allocator, variant_id):
        with pytest.raises(OutOfStockError):
            allocator.allocate(requests=[AllocationRequest(variant_id, 1)], lots={})

    def test_later_line_failure_rejects_whole_plan(self, allocator):
        ok_variant, short_variant = uuid4(), uuid4()

        with pytest.raises(InsufficientStockError) as exc_info:
            allocator.allocate(
                requests=[
                    AllocationRequest(ok_variant, 2),
                    AllocationRequest(short_variant, 9),
                ],
                lots={
                    ok_variant: [_lot(ok_variant, 10)],
                    short_variant: [_lot(short_variant, 3)],
                },
            )
        assert exc_info.value.product_variant_id == str(short_variant)


class TestRepeatedVariantLines:
    """Several lines of one variant share a single working copy of its lots."""

    def test_second_line_continues_where_first_stopped(self, allocator, variant_id):
        lot_a = _lot(variant_id, 4, expiration=date(2025, 1, 1))
        lot_b = _lot(variant_id, 10, expiration=date(2025, 2, 1))

        plan = allocator.allocate(
            requests=[AllocationRequest(variant_id, 3), AllocationRequest(variant_id, 3)],
            lots={variant_id: [lot_a, lot_b]},
        )

        first, second = plan.results
        assert [(l.stock_item_id, l.qty_allocated, l.qty_previous) for l in first.lines] == [
            (lot_a.id, 3, 4),
        ]
        assert [(l.stock_item_id, l.qty_allocated, l.qty_previous) for l in second.lines] == [
            (lot_a.id, 1, 1),
            (lot_b.id, 2, 10),
        ]

    def test_combined_lines_cannot_double_allocate(self, allocator, variant_id):
        lots = {variant_id: [_lot(variant_id, 5)]}

        with pytest.raises(InsufficientStockError) as exc_info:
            allocator.allocate(
                requests=[AllocationRequest(variant_id, 3), AllocationRequest(variant_id, 3)],
                lots=lots,
            )
        assert exc_info.value.available == 2

    def test_exhausted_by_earlier_line_is_out_of_stock(self, allocator, variant_id):
        lots = {variant_id: [_lot(variant_id, 3)]}

        with pytest.raises(OutOfStockError):
            allocator.allocate(
                requests=[AllocationRequest(variant_id, 3), AllocationRequest(variant_id, 1)],
                lots=lots,
            )


class TestAllocationPlanShape:
    def test_results_follow_request_order(self, allocator):
        v1, v2 = uuid4(), uuid4()
        plan = allocator.allocate(
            requests=[AllocationRequest(v2, 1), AllocationRequest(v1, 2)],
            lots={v1: [_lot(v1, 5)], v2: [_lot(v2, 5)]},
        )

        assert [r.product_variant_id for r in plan.results] == [v2, v1]
        assert [r.request_index for r in plan.results] == [0, 1]
        assert [r.allocated for r in plan.results] == [1, 2]
        assert len(plan.for_variant(v1)) == 1

    def test_unit_cost_copied_from_lot(self, allocator, variant_id):
        lot = _lot(variant_id, 5, unit_cost=Decimal("3.75"))
        plan = allocator.allocate(
            requests=[AllocationRequest(variant_id, 2)],
            lots={variant_id: [lot]},
        )
        assert plan.lines[0].unit_cost == Decimal("3.75")

    def test_allocation_is_deterministic(self, allocator, variant_id):
        lots = [
            _lot(variant_id, 2, expiration=date(2025, 3, 1)),
            _lot(variant_id, 2, expiration=None),
            _lot(variant_id, 2, expiration=date(2025, 1, 1)),
        ]
        requests = [AllocationRequest(variant_id, 5)]

        first = allocator.allocate(requests=requests, lots={variant_id: lots})
        second = allocator.allocate(requests=requests, lots={variant_id: list(reversed(lots))})

        assert first == second

    def test_snapshot_is_not_mutated(self, allocator, variant_id):
        lot = _lot(variant_id, 5)
        allocator.allocate(requests=[AllocationRequest(variant_id, 5)], lots={variant_id: [lot]})
        assert lot.quantity == 5

    def test_group_lots_keys_by_variant(self):
        v1, v2 = uuid4(), uuid4()
        a, b, c = _lot(v1, 1), _lot(v2, 1), _lot(v1, 1)
        assert group_lots([a, b, c]) == {v1: [a, c], v2: [b]}


class TestQuantityValidation:
    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_rejected(self, value):
        with pytest.raises(InvalidQuantityError) as exc_info:
            validate_quantity("quantity", value)
        assert exc_info.value.code == "INVALID_QUANTITY"

    @pytest.mark.parametrize("value", [1.5, "3", True, None])
    def test_non_integer_rejected(self, value):
        with pytest.raises(InvalidQuantityError):
            validate_quantity("quantity", value)

    def test_request_validates_itself(self):
        with pytest.raises(InvalidQuantityError):
            AllocationRequest(uuid4(), 0)


class TestEngineTrace:
    def test_allocation_emits_trace_record(self, allocator, variant_id, captured_logs):
        allocator.allocate(
            requests=[AllocationRequest(variant_id, 1)],
            lots={variant_id: [_lot(variant_id, 1)]},
        )

        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "fifo_allocation"
        assert len(traces[-1]["input_fingerprint"]) == 16
