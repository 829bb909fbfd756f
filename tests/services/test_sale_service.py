"""
Tests for SaleService.create_sale and the read-only allocation preview.

All tests run inside the rolled-back test session; the service only flushes.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from inventory_engines.allocation import AllocationRequest
from inventory_kernel.domain.dtos import SaleLineRequest, SaleRequest
from inventory_kernel.domain.enums import PaymentStatus, SaleStatus
from inventory_kernel.exceptions import (
    EmptySaleError,
    InsufficientStockError,
    InvalidQuantityError,
    OutOfStockError,
    TransactionTimeoutError,
    UnknownClientError,
    UnknownVariantsError,
)
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.sale import Sale
from inventory_kernel.models.stock_lot import StockLot
from inventory_services.sale_service import SaleService


@pytest.fixture
def sale_service(session, deterministic_clock):
    return SaleService(session, deterministic_clock)


def _line(variant_id, quantity, unit_price="10.00", total=None, discount="0"):
    total = total if total is not None else str(Decimal(unit_price) * quantity)
    return SaleLineRequest(
        product_variant_id=variant_id,
        quantity=quantity,
        unit_price=Decimal(unit_price),
        total=Decimal(total),
        discount=Decimal(discount),
    )


def _request(*lines, client_id=None, total=None):
    if total is None:
        total = sum((line.total for line in lines), Decimal("0"))
    return SaleRequest(items=tuple(lines), total=total, client_id=client_id)


class TestCreateSaleHappyPath:
    def test_split_across_two_lots(
        self, session, sale_service, tenant, make_lot, test_actor_id
    ):
        lot_a = make_lot(tenant.variant_id, 5, expiration_date=date(2025, 1, 1))
        lot_b = make_lot(tenant.variant_id, 10, expiration_date=date(2025, 6, 1))

        sale = sale_service.create_sale(
            tenant.company_id, test_actor_id,
            _request(_line(tenant.variant_id, 8, "10.00", "80.00")),
        )

        assert [(i.stock_item_id, i.quantity) for i in sale.items] == [
            (lot_a.id, 5),
            (lot_b.id, 3),
        ]
        assert [i.total for i in sale.items] == [Decimal("50.00"), Decimal("30.00")]
        assert all(i.unit_price == Decimal("10.00") for i in sale.items)
        assert session.get(StockLot, lot_a.id).quantity == 0
        assert session.get(StockLot, lot_b.id).quantity == 7

    def test_one_sale_entry_per_allocation_line(
        self, session, sale_service, tenant, make_lot, test_actor_id
    ):
        make_lot(tenant.variant_id, 5, expiration_date=date(2025, 1, 1))
        make_lot(tenant.variant_id, 10, expiration_date=date(2025, 6, 1))

        sale = sale_service.create_sale(
            tenant.company_id, test_actor_id, _request(_line(tenant.variant_id, 8))
        )

        entries = session.execute(
            select(InventoryLogEntry).where(InventoryLogEntry.source_id == str(sale.id))
        ).scalars().all()
        assert sorted((e.previous_qty, e.new_qty, e.quantity_change) for e in entries) == [
            (5, 0, 5),
            (10, 7, 3),
        ]
        assert all(e.type == "SALE" and e.user_id == test_actor_id for e in entries)
        assert all(e.source_type == "SALE" and not e.is_manual for e in entries)

    def test_header_fields_persisted(
        self, session, sale_service, tenant, make_lot, test_actor_id, deterministic_clock
    ):
        make_lot(tenant.variant_id, 5)
        request = SaleRequest(
            items=(_line(tenant.variant_id, 2, "4.00", "7.50", discount="0.50"),),
            total=Decimal("7.50"),
            client_id=tenant.client_id,
            status=SaleStatus.COMPLETED,
            payment_status=PaymentStatus.PAID,
            payment_method="CASH",
            discount=Decimal("0.50"),
            note="walk-in",
        )

        sale = sale_service.create_sale(tenant.company_id, test_actor_id, request)

        assert sale.company_id == tenant.company_id
        assert sale.client_id == tenant.client_id
        assert sale.user_id == test_actor_id
        assert sale.status is SaleStatus.COMPLETED
        assert sale.payment_status is PaymentStatus.PAID
        assert sale.payment_method == "CASH"
        assert sale.total == Decimal("7.50")
        assert sale.discount == Decimal("0.50")
        assert sale.note == "walk-in"
        assert sale.sale_date == deterministic_clock.now()
        assert sale.items[0].discount == Decimal("0.50")
        assert session.get(Sale, sale.id) is not None

    def test_explicit_sale_date_kept(self, sale_service, tenant, make_lot):
        make_lot(tenant.variant_id, 5)
        when = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)
        request = SaleRequest(
            items=(_line(tenant.variant_id, 1),), total=Decimal("10.00"), sale_date=when
        )

        sale = sale_service.create_sale(tenant.company_id, None, request)

        assert sale.sale_date == when

    def test_multiple_variants(self, session, sale_service, tenant, make_lot):
        v1, v2 = tenant.variant_ids
        lot1 = make_lot(v1, 5)
        lot2 = make_lot(v2, 5)

        sale = sale_service.create_sale(
            tenant.company_id, None, _request(_line(v1, 2), _line(v2, 3))
        )

        assert [(i.product_variant_id, i.quantity) for i in sale.items] == [(v1, 2), (v2, 3)]
        assert session.get(StockLot, lot1.id).quantity == 3
        assert session.get(StockLot, lot2.id).quantity == 2

    def test_repeated_variant_lines_share_lots(self, session, sale_service, tenant, make_lot):
        lot_a = make_lot(tenant.variant_id, 4, expiration_date=date(2025, 1, 1))
        lot_b = make_lot(tenant.variant_id, 10, expiration_date=date(2025, 2, 1))

        sale = sale_service.create_sale(
            tenant.company_id, None,
            _request(_line(tenant.variant_id, 3), _line(tenant.variant_id, 3)),
        )

        assert [(i.stock_item_id, i.quantity) for i in sale.items] == [
            (lot_a.id, 3),
            (lot_a.id, 1),
            (lot_b.id, 2),
        ]
        assert session.get(StockLot, lot_a.id).quantity == 0
        assert session.get(StockLot, lot_b.id).quantity == 8

    def test_sale_created_logged_with_context(
        self, sale_service, tenant, make_lot, captured_logs
    ):
        make_lot(tenant.variant_id, 5)

        sale = sale_service.create_sale(
            tenant.company_id, None, _request(_line(tenant.variant_id, 1))
        )

        created = [r for r in captured_logs() if r["message"] == "sale_created"]
        assert len(created) == 1
        assert created[0]["sale_id"] == str(sale.id)
        assert created[0]["units"] == 1


class TestCreateSaleRejections:
    """Every rejection happens before anything is written."""

    def test_empty_sale(self, sale_service, tenant):
        with pytest.raises(EmptySaleError):
            sale_service.create_sale(
                tenant.company_id, None, SaleRequest(items=(), total=Decimal("0"))
            )

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity(self, sale_service, tenant, quantity):
        with pytest.raises(InvalidQuantityError) as exc_info:
            sale_service.create_sale(
                tenant.company_id, None,
                _request(_line(tenant.variant_id, quantity, total="0")),
            )
        assert exc_info.value.field == "items[0].quantity"

    def test_unknown_variants_listed_together(self, session, sale_service, tenant, other_tenant):
        ghost = uuid4()

        with pytest.raises(UnknownVariantsError) as exc_info:
            sale_service.create_sale(
                tenant.company_id, None,
                _request(
                    _line(tenant.variant_id, 1),
                    _line(ghost, 1),
                    _line(other_tenant.variant_id, 1),
                ),
            )

        assert exc_info.value.missing_variant_ids == [str(ghost), str(other_tenant.variant_id)]
        assert session.execute(select(Sale)).scalars().all() == []

    def test_foreign_client_rejected(self, sale_service, tenant, other_tenant, make_lot):
        make_lot(tenant.variant_id, 5)

        with pytest.raises(UnknownClientError):
            sale_service.create_sale(
                tenant.company_id, None,
                _request(_line(tenant.variant_id, 1), client_id=other_tenant.client_id),
            )

    def test_out_of_stock(self, sale_service, tenant, make_lot):
        make_lot(tenant.variant_id, 0)

        with pytest.raises(OutOfStockError):
            sale_service.create_sale(
                tenant.company_id, None, _request(_line(tenant.variant_id, 1))
            )

    def test_insufficient_stock_leaves_lots_untouched(
        self, session, sale_service, tenant, make_lot
    ):
        v1, v2 = tenant.variant_ids
        lot1 = make_lot(v1, 10)
        lot2 = make_lot(v2, 2)

        with pytest.raises(InsufficientStockError) as exc_info:
            sale_service.create_sale(
                tenant.company_id, None, _request(_line(v1, 5), _line(v2, 3))
            )

        assert exc_info.value.missing == 1
        assert session.get(StockLot, lot1.id).quantity == 10
        assert session.get(StockLot, lot2.id).quantity == 2
        assert session.execute(select(InventoryLogEntry)).scalars().all() == []

    def test_checkpoint_failure_aborts(self, session, tenant, make_lot, deterministic_clock):
        make_lot(tenant.variant_id, 5)
        steps = []

        def checkpoint(step):
            steps.append(step)
            if step == "allocated":
                raise TransactionTimeoutError(phase="execute", budget_ms=1, step=step)

        service = SaleService(session, deterministic_clock, checkpoint=checkpoint)

        with pytest.raises(TransactionTimeoutError):
            service.create_sale(tenant.company_id, None, _request(_line(tenant.variant_id, 1)))

        assert steps == ["variants_validated", "allocated"]
        assert session.execute(select(Sale)).scalars().all() == []


class TestAllocatePreview:
    def test_preview_writes_nothing(self, session, sale_service, tenant, make_lot):
        lot = make_lot(tenant.variant_id, 5)

        plan = sale_service.allocate(
            tenant.company_id, [AllocationRequest(tenant.variant_id, 4)]
        )

        assert plan.total_allocated == 4
        assert plan.lines[0].stock_item_id == lot.id
        assert session.get(StockLot, lot.id).quantity == 5
        assert session.execute(select(InventoryLogEntry)).scalars().all() == []

    def test_preview_checks_tenancy(self, sale_service, tenant, other_tenant, make_lot):
        make_lot(other_tenant.variant_id, 5)

        with pytest.raises(UnknownVariantsError):
            sale_service.allocate(
                tenant.company_id, [AllocationRequest(other_tenant.variant_id, 1)]
            )
