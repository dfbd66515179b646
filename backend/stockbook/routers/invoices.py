"""Invoice router — create, edit, delete, list and top-up payments.

Endpoints:
    POST   /                   Create an invoice (decrements stock)
    GET    /                   List invoices for the selected client
    GET    /{invoice_id}       Single invoice
    PATCH  /                   Add a top-up payment
    PATCH  /edit               Edit an invoice (stock re-applied)
    PATCH  /revert-payment     Remove a top-up payment
    DELETE /                   Delete an invoice (stock restored, archived)

Create and edit are guarded by the request deduplicator, held until the
transaction commits.  The key is the `Idempotency-Key` header (or
`requestToken`) when present, otherwise the customer plus the client's
submission timestamp.
"""

import logging
import time
from datetime import date

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.auth.deps import require_permission, resolve_request_client
from stockbook.database import get_db
from stockbook.middleware.exceptions import NoClientAccessError
from stockbook.models.public.user import User
from stockbook.schemas.common import Pagination
from stockbook.schemas.invoice import (
    InvoiceCreate,
    InvoiceCreated,
    InvoiceDelete,
    InvoiceDeleted,
    InvoiceEdit,
    InvoiceEdited,
    InvoiceListResponse,
    InvoiceOut,
    PaymentAdd,
    PaymentAdded,
    PaymentRevert,
    PaymentReverted,
    UpdatedInvoiceSummary,
)
from stockbook.services import invoice_lifecycle as lifecycle
from stockbook.services.dedup import RequestDeduplicator, TTLCache, get_deduplicator, get_lookup_cache
from stockbook.utils.cache import invalidate_cache

logger = logging.getLogger(__name__)

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _after_change(db: AsyncSession) -> None:
    # Commit first so a reader refilling the cache sees the new rows
    await db.commit()
    await invalidate_cache("dashboard:*")


# ── Create ───────────────────────────────────────────────────

@router.post("", response_model=InvoiceCreated)
async def create_invoice(
    body: InvoiceCreate,
    request: Request,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("invoice.write")),
    dedup: RequestDeduplicator = Depends(get_deduplicator),
    lookup_cache: TTLCache = Depends(get_lookup_cache),
):
    client_id = resolve_request_client(request, user, body.selected_client_id)
    key = dedup.create_key(
        client_id,
        body.customer_name,
        body.customer_contact_number,
        body.submitted_at or _now_ms(),
        idempotency_key or body.request_token,
    )

    async with dedup.guard(key):
        ctx = lifecycle.LifecycleContext(db, user, client_id, lookup_cache)
        invoice = await lifecycle.create_invoice(ctx, body)
        await _after_change(db)

    return InvoiceCreated(
        message="Invoice created successfully",
        invoice_no=invoice.invoice_no,
        invoice_id=invoice.id,
    )


# ── List / get ───────────────────────────────────────────────

@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    request: Request,
    selected_client_id: str | None = Query(None, alias="selectedClientId"),
    limit: int = Query(50, ge=1, le=lifecycle.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    customer_name: str | None = Query(None, alias="customerName"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("invoice.read")),
):
    try:
        client_id = resolve_request_client(request, user, selected_client_id)
    except NoClientAccessError:
        # A user without any client sees an empty list, not an error
        return InvoiceListResponse(
            data=[],
            pagination=Pagination(total=0, limit=limit, offset=offset, has_more=False),
            message="No client access",
        )

    invoices, total = await lifecycle.list_invoices(
        db, client_id,
        limit=limit, offset=offset,
        customer_name=customer_name, start_date=start_date, end_date=end_date,
    )
    return InvoiceListResponse(
        data=[InvoiceOut.model_validate(inv) for inv in invoices],
        pagination=Pagination(
            total=total, limit=limit, offset=offset,
            has_more=offset + len(invoices) < total,
        ),
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(
    invoice_id: str,
    request: Request,
    selected_client_id: str | None = Query(None, alias="selectedClientId"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("invoice.read")),
):
    client_id = resolve_request_client(request, user, selected_client_id)
    return await lifecycle.get_invoice(db, client_id, invoice_id)


# ── Edit ─────────────────────────────────────────────────────

@router.patch("/edit", response_model=InvoiceEdited)
async def edit_invoice(
    body: InvoiceEdit,
    request: Request,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("invoice.write")),
    dedup: RequestDeduplicator = Depends(get_deduplicator),
    lookup_cache: TTLCache = Depends(get_lookup_cache),
):
    client_id = resolve_request_client(request, user, body.selected_client_id)
    key = dedup.edit_key(
        client_id, body.id, body.submitted_at or _now_ms(),
        idempotency_key or body.request_token,
    )

    async with dedup.guard(key):
        ctx = lifecycle.LifecycleContext(db, user, client_id, lookup_cache)
        invoice = await lifecycle.edit_invoice(ctx, body)
        await _after_change(db)

    return InvoiceEdited(
        message="Invoice updated successfully",
        updated_invoice=UpdatedInvoiceSummary(
            invoice_no=invoice.invoice_no,
            total_amount=invoice.total_amount,
            payment_status=invoice.payment_status,
            products_count=len(invoice.products or []),
        ),
    )


# ── Payments ─────────────────────────────────────────────────

@router.patch("", response_model=PaymentAdded)
async def add_payment(
    body: PaymentAdd,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.write")),
):
    client_id = resolve_request_client(request, user)
    ctx = lifecycle.LifecycleContext(db, user, client_id)
    invoice = await lifecycle.add_payment(
        ctx, body.id, body.additional_payment, body.payment_method
    )

    await _after_change(db)
    return PaymentAdded(
        message="Payment added successfully",
        remaining_amount=invoice.remaining_amount,
        payment_status=invoice.payment_status,
    )


@router.patch("/revert-payment", response_model=PaymentReverted)
async def revert_payment(
    body: PaymentRevert,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.revert")),
):
    client_id = resolve_request_client(request, user)
    ctx = lifecycle.LifecycleContext(db, user, client_id)
    invoice, amount = await lifecycle.revert_payment(ctx, body.invoice_id, body.payment_index)

    await _after_change(db)
    return PaymentReverted(
        message="Payment reverted successfully",
        reverted_amount=amount,
        new_remaining_amount=invoice.remaining_amount,
        payment_status=invoice.payment_status,
    )


# ── Delete ───────────────────────────────────────────────────

@router.delete("", response_model=InvoiceDeleted)
async def delete_invoice(
    body: InvoiceDelete,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("invoice.delete")),
):
    client_id = resolve_request_client(request, user)
    ctx = lifecycle.LifecycleContext(db, user, client_id)
    result = await lifecycle.delete_invoice(ctx, body.id)

    await _after_change(db)
    return InvoiceDeleted(
        message="Invoice completely deleted and all related data reverted",
        deleted_invoice_no=result.invoice_no,
        actions_completed=result.actions_completed,
    )
