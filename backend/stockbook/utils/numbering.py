"""Invoice number generation.

Invoice numbers are 8-digit, zero-padded, sequential per client:
"00000001", "00000002", …

The sequence lives in `invoice_counters`, one row per client.  The row is
advanced with `UPDATE … SET value = value + 1` and read back in the same
transaction, so two concurrent creates can never receive the same number
(the second UPDATE blocks on the first one's row lock).  If the invoice
insert later fails, the whole transaction rolls back and the number is
not consumed.

A client that predates the counter gets one seeded from the highest
invoice number it already has.
"""

import re

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.models.tenant.invoice import Invoice
from stockbook.models.tenant.invoice_counter import InvoiceCounter

INVOICE_NO_WIDTH = 8
INVOICE_NO_RE = re.compile(r"^\d{8}$")


def format_invoice_no(value: int) -> str:
    return f"{value:0{INVOICE_NO_WIDTH}d}"


def is_valid_invoice_no(invoice_no: str) -> bool:
    return bool(INVOICE_NO_RE.match(invoice_no or ""))


def _counter_name(client_id: str) -> str:
    return f"invoice:{client_id}"


async def _seed_counter(db: AsyncSession, client_id: str) -> None:
    """Create the counter row, starting after the highest existing number."""
    result = await db.execute(
        select(func.max(Invoice.invoice_no)).where(Invoice.client_id == client_id)
    )
    last = result.scalar()
    start = int(last) if last and last.isdigit() else 0

    try:
        async with db.begin_nested():
            db.add(InvoiceCounter(name=_counter_name(client_id), value=start))
    except IntegrityError:
        # Another request seeded it first
        pass


async def next_invoice_no(db: AsyncSession, client_id: str) -> str:
    """Reserve and return the next invoice number for a client."""
    name = _counter_name(client_id)
    bump = (
        update(InvoiceCounter)
        .where(InvoiceCounter.name == name)
        .values(value=InvoiceCounter.value + 1)
        .execution_options(synchronize_session=False)
    )

    result = await db.execute(bump)
    if result.rowcount == 0:
        await _seed_counter(db, client_id)
        await db.execute(bump)

    value = (
        await db.execute(select(InvoiceCounter.value).where(InvoiceCounter.name == name))
    ).scalar_one()

    invoice_no = format_invoice_no(value)
    if not is_valid_invoice_no(invoice_no):
        raise ValueError(f"Invoice counter overflowed: {invoice_no}")
    return invoice_no
