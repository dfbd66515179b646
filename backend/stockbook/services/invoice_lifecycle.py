"""Invoice lifecycle — create, edit, delete, and top-up payments.

Each operation keeps three records consistent: the invoice, its mirrored
SalesRecord, and the StockEntry counters of every product on it.

All writes of one call happen in the caller's transaction (the request
session from `get_db`), so a failure anywhere leaves nothing behind.
Audit snapshots (edit history, archive, warranty history) are the
exception: each is written inside its own SAVEPOINT and a failure there
is logged and skipped rather than aborting the operation.

Operation order, create:
    validate lines & warranty → totals → pre-flight stock check →
    conditional stock decrements → reserve invoice number →
    insert invoice + sales record → warranty history → activity log

edit:
    load → validate new lines & totals → archive original →
    restore original quantities → decrement new quantities →
    rewrite invoice + sales record → warranty history → diff entry

delete:
    load → warranty history → restore quantities → delete sales record →
    archive → delete invoice
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.middleware.exceptions import (
    PersistenceFailureError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from stockbook.models.public.user import User
from stockbook.models.tenant.invoice import Invoice
from stockbook.models.tenant.invoice_archive import ArchivedInvoice, InvoiceEditHistory
from stockbook.models.tenant.product import Product
from stockbook.models.tenant.sales_record import SalesRecord
from stockbook.models.tenant.stock_entry import StockEntry
from stockbook.models.tenant.warranty_record import WarrantyRecord
from stockbook.schemas.invoice import InvoiceCreate, InvoiceEdit, InvoiceOut, ProductLineIn
from stockbook.services import stock_ledger
from stockbook.services.dedup import TTLCache
from stockbook.services.invoice_validation import (
    balance_after_top_ups,
    compute_totals,
    diff_invoices,
    is_pay_later,
    money,
    resolve_invoice_date,
    status_for_balance,
    status_on_create,
    status_on_edit,
)
from stockbook.services.stock_ledger import StockKey
from stockbook.services.warranty import build_warranty, is_warranty_exempt
from stockbook.utils.activity import log_activity
from stockbook.utils.numbering import next_invoice_no

logger = logging.getLogger(__name__)

DELETE_REASON = "Invoice deleted by user"
EDIT_WARRANTY_REASON = "Invoice edited - warranty information updated"
MAX_PAGE_SIZE = 100

DELETE_ACTIONS = [
    "Warranty data preserved",
    "Stock quantities restored",
    "Sales record deleted",
    "Invoice data archived",
    "Main invoice deleted",
]


@dataclass
class Clock:
    """Injectable time source so tests can pin 'today'."""
    now: Callable[[], datetime] = datetime.utcnow

    def today(self) -> date:
        return self.now().date()


@dataclass
class LifecycleContext:
    db: AsyncSession
    user: User
    client_id: str
    lookup_cache: TTLCache | None = None
    clock: Clock = field(default_factory=Clock)


@dataclass
class DeleteResult:
    invoice_no: str
    actions_completed: list[str]


# ── Helpers ──────────────────────────────────────────────────

async def get_invoice(db: AsyncSession, client_id: str, invoice_id: str) -> Invoice:
    result = await db.execute(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.client_id == client_id)
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise ResourceNotFoundError("Invoice", invoice_id)
    return invoice


def snapshot(invoice: Invoice) -> dict:
    """JSON-safe full copy of an invoice."""
    return InvoiceOut.model_validate(invoice).model_dump(mode="json")


async def _best_effort(db: AsyncSession, what: str, rows: list) -> bool:
    """Write audit rows in a SAVEPOINT; log and carry on if that fails."""
    if not rows:
        return True
    try:
        async with db.begin_nested():
            db.add_all(rows)
        return True
    except SQLAlchemyError:
        logger.warning("%s failed; continuing without it", what, exc_info=True)
        return False


async def _load_product(ctx: LifecycleContext, line: ProductLineIn) -> dict:
    """Catalog snapshot for a line, via the lookup cache when available."""

    async def fetch() -> dict | None:
        stmt = select(Product).where(Product.client_id == ctx.client_id)
        if line.product_id:
            stmt = stmt.where(Product.id == line.product_id)
        else:
            stmt = stmt.join(StockEntry, StockEntry.product_id == Product.id).where(
                StockEntry.brand_name == line.brand_name,
                StockEntry.series_name == line.series_name,
            )
        product = (await ctx.db.execute(stmt)).scalar_one_or_none()
        if product is None:
            return None
        return {
            "id": product.id,
            "name": product.name,
            "brand_name": product.brand_name,
            "series_name": product.series_name,
            "product_type": product.product_type.value,
            "category": product.category,
            "description": product.description,
            "specifications": product.specifications,
        }

    if not line.product_id and not (line.brand_name and line.series_name):
        raise ValidationFailedError("Each product line needs a productId or brand and series")

    if ctx.lookup_cache is None:
        product = await fetch()
    else:
        key = (ctx.client_id, line.product_id or f"{line.brand_name}|{line.series_name}")
        product = await ctx.lookup_cache.get_or_fetch(key, fetch)

    if product is None:
        ident = line.product_id or f"{line.brand_name} {line.series_name}"
        raise ValidationFailedError(f"Unknown product: {ident}")
    return product


async def build_lines(
    ctx: LifecycleContext,
    lines_in: list[ProductLineIn],
    warranty_start_override: date | None,
) -> list[dict]:
    """Validate incoming lines and turn them into stored line dicts."""
    today = ctx.clock.today()
    lines = []
    for line in lines_in:
        product = await _load_product(ctx, line)
        label = line.product_name or product["name"]

        warranty = None
        if not is_warranty_exempt(product["product_type"]):
            terms = build_warranty(
                label=label,
                code=line.warranty_code,
                start_date=warranty_start_override or line.warranty_start_date,
                duration_months=line.warranty_duration,
                today=today,
            )
            warranty = terms.to_json() if terms else None

        lines.append({
            "product_id": product["id"],
            "product_name": label,
            "brand_name": product["brand_name"],
            "series_name": product["series_name"],
            "product_type": product["product_type"],
            "price": money(line.price),
            "quantity": line.quantity,
            "total_price": money(line.price * line.quantity),
            "warranty": warranty,
            "category": product["category"],
            "description": product["description"],
            "specifications": product["specifications"],
            "battery_details": line.battery_details or {
                "brand_name": product["brand_name"],
                "series_name": product["series_name"],
            },
        })
    return lines


def _quantities(lines: list[dict]) -> OrderedDict[StockKey, int]:
    """Total quantity per stock key, in first-seen order."""
    totals: OrderedDict[StockKey, int] = OrderedDict()
    for line in lines:
        key = StockKey.for_line(line)
        totals[key] = totals.get(key, 0) + int(line["quantity"])
    return totals


async def _take_stock(ctx: LifecycleContext, lines: list[dict]) -> None:
    quantities = _quantities(lines)
    # Pre-flight first so the error names the first short line before any write
    for key, qty in quantities.items():
        await stock_ledger.check_available(ctx.db, ctx.client_id, key, qty)
    for key, qty in quantities.items():
        await stock_ledger.decrement_and_record_sale(ctx.db, ctx.client_id, key, qty)


async def _return_stock(ctx: LifecycleContext, lines: list[dict]) -> None:
    for key, qty in _quantities(lines).items():
        try:
            await stock_ledger.restore_from_sale(ctx.db, ctx.client_id, key, qty)
        except ResourceNotFoundError:
            logger.warning(
                "No stock entry for %s while restoring %d units; skipped", key.label, qty
            )


def _warranty_rows(
    invoice: Invoice,
    *,
    event: str,
    reason: str | None = None,
    deleted_at: datetime | None = None,
) -> list[WarrantyRecord]:
    rows = []
    for line in invoice.products or []:
        warranty = line.get("warranty")
        if not warranty or not warranty.get("code"):
            continue
        rows.append(WarrantyRecord(
            client_id=invoice.client_id,
            warranty_code=warranty["code"],
            customer_name=invoice.customer_name,
            customer_contact_number=invoice.customer_contact_number,
            customer_address=invoice.customer_address,
            product_details=line,
            original_invoice_no=invoice.invoice_no,
            original_invoice_id=invoice.id,
            event=event,
            reason=reason,
            deleted_at=deleted_at,
        ))
    return rows


def _sales_products(lines: list[dict]) -> list[dict]:
    return [
        {
            "product_id": line["product_id"],
            "product_name": line["product_name"],
            "brand_name": line["brand_name"],
            "series_name": line["series_name"],
            "quantity": line["quantity"],
            "price": line["price"],
            "total_price": line["total_price"],
            "battery_details": line["battery_details"],
        }
        for line in lines
    ]


# ── Create ───────────────────────────────────────────────────

async def create_invoice(ctx: LifecycleContext, payload: InvoiceCreate) -> Invoice:
    now = ctx.clock.now()
    invoice_date = resolve_invoice_date(
        payload.use_custom_date, payload.custom_date, ctx.clock.today(), now
    )
    override = payload.custom_date if payload.use_custom_date else None

    lines = await build_lines(ctx, payload.product_detail, override)
    totals = compute_totals(lines, payload.received_amount, payload.batteries_rate)

    await _take_stock(ctx, lines)
    invoice_no = await next_invoice_no(ctx.db, ctx.client_id)

    invoice = Invoice(
        client_id=ctx.client_id,
        invoice_no=invoice_no,
        customer_name=payload.customer_name,
        customer_address=payload.customer_address,
        customer_contact_number=payload.customer_contact_number,
        customer_type=payload.customer_type,
        customer_id=payload.customer_id,
        vehicle_no=payload.vehicle_no,
        products=lines,
        payment_method=payload.payment_method,
        total_amount=totals.total_amount,
        received_amount=totals.received_amount,
        batteries_rate=totals.batteries_rate,
        remaining_amount=totals.remaining_amount,
        payment_status=status_on_create(totals),
        is_pay_later=is_pay_later(payload.payment_method),
        additional_payments=[],
        edit_history=[],
        created_date=invoice_date,
        created_by=ctx.user.id,
    )
    ctx.db.add(invoice)
    ctx.db.add(SalesRecord(
        client_id=ctx.client_id,
        invoice_no=invoice_no,
        date=invoice_date,
        customer_name=payload.customer_name,
        products=_sales_products(lines),
        total_amount=totals.total_amount,
        payment_method=payload.payment_method,
    ))
    try:
        await ctx.db.flush()
    except IntegrityError as e:
        logger.error("Invoice %s for client %s not persisted: %s", invoice_no, ctx.client_id, e)
        raise PersistenceFailureError("Failed to create invoice") from e

    await _best_effort(
        ctx.db, f"Warranty history for invoice {invoice_no}",
        _warranty_rows(invoice, event="created"),
    )
    await log_activity(
        ctx.db, ctx.user, ctx.client_id,
        action="created", entity_type="invoice",
        entity_id=invoice.id, entity_code=invoice_no,
        summary=(
            f"Invoice {invoice_no} for {invoice.customer_name} "
            f"({len(lines)} lines, {totals.total_amount:,.2f})"
        ),
    )
    await ctx.db.flush()

    logger.info(
        "Created invoice %s for client %s: total=%.2f remaining=%.2f status=%s",
        invoice_no, ctx.client_id, totals.total_amount,
        totals.remaining_amount, invoice.payment_status,
    )
    return invoice


# ── Edit ─────────────────────────────────────────────────────

async def edit_invoice(ctx: LifecycleContext, payload: InvoiceEdit) -> Invoice:
    invoice = await get_invoice(ctx.db, ctx.client_id, payload.id)
    original = snapshot(invoice)
    original_lines = list(invoice.products or [])

    now = ctx.clock.now()
    if payload.use_custom_date:
        invoice_date = resolve_invoice_date(True, payload.custom_date, ctx.clock.today(), now)
        override = payload.custom_date
    else:
        invoice_date = invoice.created_date
        override = None

    lines = await build_lines(ctx, payload.product_detail, override)
    totals = compute_totals(lines, payload.received_amount, payload.batteries_rate)
    top_ups = list(invoice.additional_payments or [])
    remaining = balance_after_top_ups(totals, top_ups)

    await _best_effort(ctx.db, f"Edit history for invoice {invoice.invoice_no}", [
        InvoiceEditHistory(
            client_id=ctx.client_id,
            invoice_no=invoice.invoice_no,
            original_id=invoice.id,
            snapshot=original,
            reason=payload.edit_reason,
            edited_at=now,
        ),
    ])

    # Reverse first so the new quantities are checked against restored stock
    await _return_stock(ctx, original_lines)
    await _take_stock(ctx, lines)

    changes = diff_invoices(original, {
        "customer_name": payload.customer_name,
        "customer_address": payload.customer_address,
        "customer_contact_number": payload.customer_contact_number,
        "payment_method": payload.payment_method,
        "received_amount": totals.received_amount,
        "batteries_rate": totals.batteries_rate,
        "products": lines,
        "created_date": invoice_date,
    })

    invoice.customer_name = payload.customer_name
    invoice.customer_address = payload.customer_address
    invoice.customer_contact_number = payload.customer_contact_number
    invoice.customer_type = payload.customer_type
    invoice.customer_id = payload.customer_id
    invoice.vehicle_no = payload.vehicle_no
    invoice.products = lines
    invoice.payment_method = payload.payment_method
    invoice.total_amount = totals.total_amount
    invoice.received_amount = totals.received_amount
    invoice.batteries_rate = totals.batteries_rate
    invoice.remaining_amount = remaining
    if top_ups:
        invoice.payment_status = status_for_balance(remaining, totals.total_amount)
    else:
        invoice.payment_status = status_on_edit(totals)
    invoice.is_pay_later = is_pay_later(payload.payment_method)
    invoice.created_date = invoice_date
    invoice.edit_history = [*(invoice.edit_history or []), {
        "edited_at": now.isoformat(),
        "edit_reason": payload.edit_reason,
        "changes": changes,
    }]

    sale = (await ctx.db.execute(
        select(SalesRecord).where(
            SalesRecord.client_id == ctx.client_id,
            SalesRecord.invoice_no == invoice.invoice_no,
        )
    )).scalar_one_or_none()
    if sale is None:
        logger.warning("Sales record for invoice %s missing; recreating", invoice.invoice_no)
        sale = SalesRecord(client_id=ctx.client_id, invoice_no=invoice.invoice_no)
        ctx.db.add(sale)
    sale.date = invoice_date
    sale.customer_name = payload.customer_name
    sale.products = _sales_products(lines)
    sale.total_amount = totals.total_amount
    sale.payment_method = payload.payment_method
    await ctx.db.flush()

    await _best_effort(
        ctx.db, f"Warranty history for invoice {invoice.invoice_no}",
        _warranty_rows(invoice, event="updated", reason=EDIT_WARRANTY_REASON),
    )
    await log_activity(
        ctx.db, ctx.user, ctx.client_id,
        action="edited", entity_type="invoice",
        entity_id=invoice.id, entity_code=invoice.invoice_no,
        summary=f"Invoice {invoice.invoice_no} edited ({len(changes)} changes)",
        details={"changes": changes},
    )
    await ctx.db.flush()

    logger.info(
        "Edited invoice %s for client %s: %d changes",
        invoice.invoice_no, ctx.client_id, len(changes),
    )
    return invoice


# ── Delete ───────────────────────────────────────────────────

async def delete_invoice(ctx: LifecycleContext, invoice_id: str) -> DeleteResult:
    invoice = await get_invoice(ctx.db, ctx.client_id, invoice_id)
    invoice_no = invoice.invoice_no
    now = ctx.clock.now()

    warranty_kept = await _best_effort(
        ctx.db, f"Warranty history for invoice {invoice_no}",
        _warranty_rows(invoice, event="deleted", reason=DELETE_REASON, deleted_at=now),
    )

    await _return_stock(ctx, list(invoice.products or []))

    result = await ctx.db.execute(
        delete(SalesRecord)
        .where(
            SalesRecord.client_id == ctx.client_id,
            SalesRecord.invoice_no == invoice_no,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("No sales record found for invoice %s", invoice_no)

    archived = await _best_effort(ctx.db, f"Archive of invoice {invoice_no}", [
        ArchivedInvoice(
            client_id=ctx.client_id,
            invoice_no=invoice_no,
            original_id=invoice.id,
            snapshot=snapshot(invoice),
            reason=DELETE_REASON,
            archived_at=now,
        ),
    ])

    await ctx.db.delete(invoice)
    await log_activity(
        ctx.db, ctx.user, ctx.client_id,
        action="deleted", entity_type="invoice",
        entity_id=invoice_id, entity_code=invoice_no,
        summary=f"Invoice {invoice_no} deleted and stock restored",
    )
    await ctx.db.flush()

    skipped = set()
    if not warranty_kept:
        skipped.add(DELETE_ACTIONS[0])
    if not archived:
        skipped.add(DELETE_ACTIONS[3])

    logger.info("Deleted invoice %s for client %s", invoice_no, ctx.client_id)
    return DeleteResult(
        invoice_no=invoice_no,
        actions_completed=[a for a in DELETE_ACTIONS if a not in skipped],
    )


# ── Payments ─────────────────────────────────────────────────

async def add_payment(
    ctx: LifecycleContext,
    invoice_id: str,
    amount: float,
    methods: list[str],
) -> Invoice:
    amount = money(amount)
    if amount <= 0:
        raise ValidationFailedError("Payment amount must be greater than 0")
    methods = [m.strip() for m in methods or [] if m and m.strip()]
    if not methods:
        raise ValidationFailedError("At least one payment method is required")

    invoice = await get_invoice(ctx.db, ctx.client_id, invoice_id)
    if amount > money(invoice.remaining_amount):
        raise ValidationFailedError(
            f"Payment amount cannot exceed remaining amount ({invoice.remaining_amount:.2f})"
        )

    invoice.additional_payments = [*(invoice.additional_payments or []), {
        "amount": amount,
        "payment_method": methods,
        "added_date": ctx.clock.now().isoformat(),
    }]
    invoice.remaining_amount = money(invoice.remaining_amount - amount)
    invoice.payment_status = status_for_balance(invoice.remaining_amount, invoice.total_amount)

    await log_activity(
        ctx.db, ctx.user, ctx.client_id,
        action="payment_added", entity_type="invoice",
        entity_id=invoice.id, entity_code=invoice.invoice_no,
        summary=f"Payment of {amount:,.2f} added to invoice {invoice.invoice_no}",
    )
    await ctx.db.flush()
    return invoice


async def revert_payment(
    ctx: LifecycleContext,
    invoice_id: str,
    payment_index: int,
) -> tuple[Invoice, float]:
    """Remove one top-up payment and put its amount back on the balance."""
    invoice = await get_invoice(ctx.db, ctx.client_id, invoice_id)
    payments = list(invoice.additional_payments or [])
    if not 0 <= payment_index < len(payments):
        raise ValidationFailedError("Invalid payment index")

    reverted = payments.pop(payment_index)
    amount = money(reverted.get("amount"))
    ceiling = money(invoice.total_amount - invoice.received_amount - invoice.batteries_rate)
    remaining = money(invoice.remaining_amount + amount)
    if remaining > ceiling:
        raise ValidationFailedError(
            f"Reverting this payment would leave {remaining:.2f} outstanding, "
            f"more than the invoice balance ({ceiling:.2f})"
        )
    invoice.additional_payments = payments
    invoice.remaining_amount = remaining
    invoice.payment_status = status_for_balance(invoice.remaining_amount, invoice.total_amount)

    await log_activity(
        ctx.db, ctx.user, ctx.client_id,
        action="payment_reverted", entity_type="invoice",
        entity_id=invoice.id, entity_code=invoice.invoice_no,
        summary=f"Payment of {amount:,.2f} reverted on invoice {invoice.invoice_no}",
        details={"payment": reverted},
    )
    await ctx.db.flush()
    return invoice, amount


# ── Listing ──────────────────────────────────────────────────

async def list_invoices(
    db: AsyncSession,
    client_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
    customer_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[Invoice], int]:
    """Newest first.  `end_date` is inclusive."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    filters = [Invoice.client_id == client_id]
    if customer_name:
        filters.append(Invoice.customer_name.icontains(customer_name, autoescape=True))
    if start_date:
        filters.append(Invoice.created_date >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        filters.append(
            Invoice.created_date < datetime.combine(end_date + timedelta(days=1), datetime.min.time())
        )

    total = (await db.execute(select(func.count(Invoice.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Invoice)
        .where(*filters)
        .order_by(Invoice.created_date.desc(), Invoice.invoice_no.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total
