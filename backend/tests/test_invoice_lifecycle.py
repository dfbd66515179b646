"""Invoice lifecycle service tests (no HTTP layer)."""

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from conftest import fresh_stock
from stockbook.middleware.exceptions import (
    InsufficientStockError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from stockbook.models.tenant.invoice_archive import ArchivedInvoice, InvoiceEditHistory
from stockbook.models.tenant.sales_record import SalesRecord
from stockbook.models.tenant.warranty_record import WarrantyRecord
from stockbook.schemas.invoice import InvoiceCreate, InvoiceEdit
from stockbook.services import invoice_lifecycle as lifecycle
from stockbook.services.invoice_validation import (
    balance_after_top_ups,
    compute_totals,
    diff_invoices,
    status_for_balance,
    status_on_create,
    status_on_edit,
)


class FixedClock(lifecycle.Clock):
    def __init__(self, now: datetime):
        super().__init__(now=lambda: now)


def _ctx(db_session, test_user, client_id):
    return lifecycle.LifecycleContext(
        db_session, test_user, client_id, clock=FixedClock(datetime(2024, 8, 1, 10, 30)),
    )


def _create(product, quantity=1, **overrides) -> InvoiceCreate:
    data = {
        "customer_name": "Jane Doe",
        "customer_address": "12 Main Road",
        "customer_contact_number": "03001234567",
        "payment_method": ["Cash"],
        "received_amount": 0,
        "product_detail": [{
            "product_id": product["product_id"],
            "price": 15000,
            "quantity": quantity,
            "warranty_code": "WX-1001",
            "warranty_start_date": "2024-01-15",
            "warranty_duration": 6,
        }],
    }
    data.update(overrides)
    return InvoiceCreate.model_validate(data)


def _edit(invoice_id, product, quantity, **overrides) -> InvoiceEdit:
    data = _create(product, quantity, **overrides).model_dump()
    data["id"] = invoice_id
    return InvoiceEdit.model_validate(data)


@pytest.mark.unit
class TestInvoiceRules:

    def test_totals(self):
        totals = compute_totals([{"total_price": 100.0}, {"total_price": 50.5}], 100, 20)
        assert totals.total_amount == 150.5
        assert totals.remaining_amount == 30.5

    def test_float_noise_is_paid(self):
        totals = compute_totals([{"total_price": 0.3}], 0.1 + 0.2, 0)
        assert totals.remaining_amount == 0
        assert status_on_create(totals) == "paid"

    @pytest.mark.parametrize("received,batteries", [(200, 0), (0, 200), (60, 60)])
    def test_payments_cannot_exceed_total(self, received, batteries):
        with pytest.raises(ValidationFailedError):
            compute_totals([{"total_price": 100.0}], received, batteries)

    def test_status_on_edit_pending(self):
        totals = compute_totals([{"total_price": 100.0}], 0, 0)
        assert status_on_edit(totals) == "pending"
        assert status_on_create(totals) == "partial"

    def test_status_for_balance(self):
        assert status_for_balance(0, 100) == "paid"
        assert status_for_balance(40, 100) == "partial"
        assert status_for_balance(100, 100) == "pending"

    def test_balance_after_top_ups(self):
        totals = compute_totals([{"total_price": 100.0}], 20, 0)
        payments = [{"amount": 30}, {"amount": 0.1}, {"amount": 0.2}]
        assert balance_after_top_ups(totals, payments) == 49.7
        assert balance_after_top_ups(totals, []) == 80

    def test_top_ups_above_new_balance_rejected(self):
        totals = compute_totals([{"total_price": 100.0}], 20, 0)
        with pytest.raises(ValidationFailedError, match="exceed the new balance"):
            balance_after_top_ups(totals, [{"amount": 80.01}])

    def test_diff_reports_quantity_change(self):
        line = {"product_id": "p1", "series_name": "N70", "quantity": 5, "price": 10}
        changes = diff_invoices(
            {"products": [line], "created_date": "2024-08-01T00:00:00"},
            {"products": [{**line, "quantity": 8}], "created_date": datetime(2024, 8, 1, 9)},
        )
        assert changes == [{
            "field": "N70 quantity", "old_value": 5, "new_value": 8, "type": "product",
        }]


@pytest.mark.integration
@pytest.mark.asyncio
class TestCreateInvoice:

    async def test_create_decrements_stock_and_mirrors_sale(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)

        invoice = await lifecycle.create_invoice(ctx, _create(battery, quantity=2, received_amount=10000))

        assert invoice.invoice_no == "00000001"
        assert invoice.total_amount == 30000
        assert invoice.remaining_amount == 20000
        assert invoice.payment_status == "partial"
        assert invoice.products[0]["warranty"]["end_date"] == "2024-07-15"

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (8, 2)

        sale = (await db_session.execute(select(SalesRecord))).scalar_one()
        assert sale.invoice_no == "00000001"
        assert sale.products[0]["quantity"] == 2

        history = (await db_session.execute(select(WarrantyRecord))).scalar_one()
        assert history.event == "created"
        assert history.warranty_code == "WX-1001"

    async def test_numbers_are_sequential(self, db_session, test_user, test_client_org, battery):
        ctx = _ctx(db_session, test_user, test_client_org)
        numbers = [
            (await lifecycle.create_invoice(ctx, _create(battery))).invoice_no
            for _ in range(3)
        ]
        assert numbers == ["00000001", "00000002", "00000003"]

    async def test_fully_paid(self, db_session, test_user, test_client_org, battery):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, received_amount=15000))
        assert invoice.payment_status == "paid"
        assert invoice.remaining_amount == 0

    async def test_tonic_ignores_warranty_data(
        self, db_session, test_user, test_client_org, tonic
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        payload = _create(tonic, product_detail=[{
            "product_id": tonic["product_id"],
            "price": 500,
            "quantity": 3,
            "warranty_code": "x",
            "warranty_duration": 999,
        }])

        invoice = await lifecycle.create_invoice(ctx, payload)

        assert invoice.products[0]["warranty"] is None
        assert invoice.products[0]["product_type"] == "tonic"

    async def test_insufficient_stock_writes_nothing(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)

        with pytest.raises(InsufficientStockError):
            await lifecycle.create_invoice(ctx, _create(battery, quantity=11))

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert entry.in_stock == 10
        assert (await db_session.execute(select(func.count(SalesRecord.id)))).scalar() == 0

    async def test_invalid_warranty_rejected_before_stock(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        payload = _create(battery, product_detail=[{
            "product_id": battery["product_id"],
            "price": 15000,
            "quantity": 1,
            "warranty_code": "AB",
            "warranty_start_date": "2024-01-15",
            "warranty_duration": 6,
        }])

        with pytest.raises(ValidationFailedError, match="Invalid warranty code"):
            await lifecycle.create_invoice(ctx, payload)

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert entry.in_stock == 10

    async def test_custom_date_sets_invoice_and_warranty_start(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(
            ctx, _create(battery, use_custom_date=True, custom_date="2024-03-10"),
        )

        assert invoice.created_date == datetime(2024, 3, 10)
        assert invoice.products[0]["warranty"]["start_date"] == "2024-03-10"
        assert invoice.products[0]["warranty"]["end_date"] == "2024-09-10"

    async def test_future_custom_date_rejected(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        with pytest.raises(ValidationFailedError, match="future"):
            await lifecycle.create_invoice(
                ctx, _create(battery, use_custom_date=True, custom_date=date(2024, 8, 2)),
            )


@pytest.mark.integration
@pytest.mark.asyncio
class TestEditInvoice:

    async def test_edit_applies_net_quantity(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, quantity=5))

        edited = await lifecycle.edit_invoice(ctx, _edit(invoice.id, battery, 8))

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (2, 8)
        assert edited.total_amount == 120000
        assert edited.invoice_no == invoice.invoice_no

        [entry_log] = edited.edit_history
        assert {
            "field": "N70 quantity", "old_value": 5, "new_value": 8, "type": "product",
        } in entry_log["changes"]

        snapshot = (await db_session.execute(select(InvoiceEditHistory))).scalar_one()
        assert snapshot.snapshot["products"][0]["quantity"] == 5

        sale = (await db_session.execute(select(SalesRecord))).scalar_one()
        assert sale.products[0]["quantity"] == 8

    async def test_edit_can_use_restored_units(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, quantity=10))

        await lifecycle.edit_invoice(ctx, _edit(invoice.id, battery, 10))

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (0, 10)

    async def test_edit_unknown_invoice(self, db_session, test_user, test_client_org, battery):
        ctx = _ctx(db_session, test_user, test_client_org)
        with pytest.raises(ResourceNotFoundError):
            await lifecycle.edit_invoice(ctx, _edit("missing", battery, 1))


@pytest.mark.integration
@pytest.mark.asyncio
class TestDeleteInvoice:

    async def test_delete_restores_and_archives(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, quantity=5))
        invoice_id = invoice.id

        result = await lifecycle.delete_invoice(ctx, invoice_id)

        assert result.invoice_no == "00000001"
        assert result.actions_completed == lifecycle.DELETE_ACTIONS
        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (10, 0)
        assert (await db_session.execute(select(func.count(SalesRecord.id)))).scalar() == 0

        archived = (await db_session.execute(select(ArchivedInvoice))).scalar_one()
        assert archived.original_id == invoice_id

        events = (await db_session.execute(
            select(WarrantyRecord.event).order_by(WarrantyRecord.recorded_at)
        )).scalars().all()
        assert "deleted" in events

        with pytest.raises(ResourceNotFoundError):
            await lifecycle.get_invoice(db_session, test_client_org, invoice_id)

    async def test_failed_archive_left_out_of_actions(
        self, db_session, test_user, test_client_org, battery, monkeypatch
    ):
        def archive_without_original(**kwargs):
            kwargs["original_id"] = None
            return ArchivedInvoice(**kwargs)

        monkeypatch.setattr(lifecycle, "ArchivedInvoice", archive_without_original)
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, quantity=5))
        invoice_id = invoice.id

        result = await lifecycle.delete_invoice(ctx, invoice_id)

        assert "Invoice data archived" not in result.actions_completed
        assert result.actions_completed == [
            "Warranty data preserved",
            "Stock quantities restored",
            "Sales record deleted",
            "Main invoice deleted",
        ]
        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (10, 0)
        assert (await db_session.execute(select(func.count(ArchivedInvoice.id)))).scalar() == 0
        with pytest.raises(ResourceNotFoundError):
            await lifecycle.get_invoice(db_session, test_client_org, invoice_id)

    async def test_delete_unknown_invoice(self, db_session, test_user, test_client_org):
        ctx = _ctx(db_session, test_user, test_client_org)
        with pytest.raises(ResourceNotFoundError):
            await lifecycle.delete_invoice(ctx, "missing")


@pytest.mark.integration
@pytest.mark.asyncio
class TestPayments:

    async def test_add_payment_to_zero_marks_paid(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, received_amount=5000))

        invoice = await lifecycle.add_payment(ctx, invoice.id, 4000, ["Cash"])
        assert invoice.remaining_amount == 6000
        assert invoice.payment_status == "partial"

        invoice = await lifecycle.add_payment(ctx, invoice.id, 6000, ["Bank Transfer"])
        assert invoice.remaining_amount == 0
        assert invoice.payment_status == "paid"
        assert len(invoice.additional_payments) == 2

    async def test_payment_over_remaining_rejected(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, received_amount=5000))

        with pytest.raises(ValidationFailedError, match="cannot exceed remaining"):
            await lifecycle.add_payment(ctx, invoice.id, 10000.01, ["Cash"])

    async def test_revert_restores_balance(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, received_amount=5000))
        await lifecycle.add_payment(ctx, invoice.id, 10000, ["Cash"])

        invoice, amount = await lifecycle.revert_payment(ctx, invoice.id, 0)

        assert amount == 10000
        assert invoice.remaining_amount == 10000
        assert invoice.payment_status == "partial"
        assert invoice.additional_payments == []

    async def test_edit_keeps_recorded_top_ups(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery))
        await lifecycle.add_payment(ctx, invoice.id, 5000, ["Cash"])

        edited = await lifecycle.edit_invoice(ctx, _edit(invoice.id, battery, 1))

        assert edited.remaining_amount == 10000
        assert edited.payment_status == "partial"
        assert len(edited.additional_payments) == 1

        invoice, amount = await lifecycle.revert_payment(ctx, invoice.id, 0)
        assert amount == 5000
        assert invoice.remaining_amount == 15000
        assert invoice.payment_status == "pending"

    async def test_edit_below_recorded_top_ups_rejected(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, quantity=2))
        await lifecycle.add_payment(ctx, invoice.id, 20000, ["Cash"])

        with pytest.raises(ValidationFailedError, match="exceed the new balance"):
            await lifecycle.edit_invoice(ctx, _edit(invoice.id, battery, 1))

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (8, 2)

    async def test_revert_above_balance_rejected(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery, received_amount=5000))
        invoice = await lifecycle.add_payment(ctx, invoice.id, 4000, ["Cash"])
        invoice.remaining_amount = 10000
        await db_session.flush()

        with pytest.raises(ValidationFailedError, match="more than the invoice balance"):
            await lifecycle.revert_payment(ctx, invoice.id, 0)

    async def test_revert_bad_index(self, db_session, test_user, test_client_org, battery):
        ctx = _ctx(db_session, test_user, test_client_org)
        invoice = await lifecycle.create_invoice(ctx, _create(battery))

        with pytest.raises(ValidationFailedError, match="Invalid payment index"):
            await lifecycle.revert_payment(ctx, invoice.id, 0)


@pytest.mark.integration
@pytest.mark.asyncio
class TestListInvoices:

    async def test_filters_and_pagination(
        self, db_session, test_user, test_client_org, battery
    ):
        ctx = _ctx(db_session, test_user, test_client_org)
        await lifecycle.create_invoice(ctx, _create(battery))
        await lifecycle.create_invoice(ctx, _create(battery, customer_name="Ali Khan"))
        await lifecycle.create_invoice(
            ctx, _create(battery, use_custom_date=True, custom_date="2024-02-01"),
        )

        invoices, total = await lifecycle.list_invoices(db_session, test_client_org, limit=2)
        assert total == 3
        assert len(invoices) == 2

        invoices, total = await lifecycle.list_invoices(
            db_session, test_client_org, customer_name="ali"
        )
        assert [i.customer_name for i in invoices] == ["Ali Khan"]

        invoices, total = await lifecycle.list_invoices(
            db_session, test_client_org, start_date=date(2024, 2, 1), end_date=date(2024, 2, 1),
        )
        assert total == 1
