"""Time-boxed sales–stock audit over the database.

Reads a client's sales records in keyset-paginated batches and its stock
entries, then hands both to the pure verifier.  The whole run is bounded
by `timeout` seconds; exceeding it raises AuditTimeoutError and leaves
nothing behind (the audit never writes).
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import AsyncIterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.config import settings
from stockbook.middleware.exceptions import AuditTimeoutError
from stockbook.models.tenant.sales_record import SalesRecord
from stockbook.models.tenant.stock_entry import StockEntry
from stockbook.services.sync_verifier import StockSnapshot, verify_sales_stock_sync

logger = logging.getLogger(__name__)


async def iter_sales(
    db: AsyncSession,
    client_id: str,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    batch_size: int = 500,
) -> AsyncIterator[dict]:
    """Yield {"invoice_no", "products"} for each sales record, batch by batch."""
    filters = [SalesRecord.client_id == client_id]
    if start_date:
        filters.append(SalesRecord.date >= datetime.combine(start_date, time.min))
    if end_date:
        filters.append(SalesRecord.date < datetime.combine(end_date + timedelta(days=1), time.min))

    last_id = ""
    while True:
        rows = (await db.execute(
            select(SalesRecord.id, SalesRecord.invoice_no, SalesRecord.products)
            .where(*filters, SalesRecord.id > last_id)
            .order_by(SalesRecord.id)
            .limit(batch_size)
        )).all()
        for row in rows:
            yield {"invoice_no": row.invoice_no, "products": row.products or []}
        if len(rows) < batch_size:
            return
        last_id = rows[-1].id


async def load_stock(db: AsyncSession, client_id: str) -> list[StockSnapshot]:
    result = await db.execute(
        select(
            StockEntry.brand_name,
            StockEntry.series_name,
            StockEntry.sold_count,
            StockEntry.in_stock,
            StockEntry.product_cost,
        ).where(StockEntry.client_id == client_id)
    )
    return [
        StockSnapshot(
            brand_name=row.brand_name,
            series_name=row.series_name,
            sold_count=row.sold_count,
            in_stock=row.in_stock,
            product_cost=row.product_cost or 0.0,
        )
        for row in result.all()
    ]


async def _audit(db, client_id, start_date, end_date, batch_size) -> dict:
    sales = [
        sale async for sale in iter_sales(
            db, client_id,
            start_date=start_date, end_date=end_date, batch_size=batch_size,
        )
    ]
    stock = await load_stock(db, client_id)
    return verify_sales_stock_sync(sales, stock)


async def run_sync_audit(
    db: AsyncSession,
    client_id: str,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    timeout: float | None = None,
    batch_size: int | None = None,
) -> dict:
    timeout = settings.sync_audit_timeout_seconds if timeout is None else timeout
    batch_size = batch_size or settings.sync_audit_batch_size

    try:
        report = await asyncio.wait_for(
            _audit(db, client_id, start_date, end_date, batch_size),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error("Sync audit for client %s timed out after %ss", client_id, timeout)
        raise AuditTimeoutError(timeout)

    summary = report["sync_summary"]
    logger.info(
        "Sync audit for client %s: %d products, %d synced, %d issues",
        client_id,
        summary["total_products"],
        summary["synced_products"],
        len(report["sync_issues"]),
    )
    return report


def sync_message(report: dict) -> str:
    if report["is_fully_synced"]:
        return "All sales and stock data are perfectly synchronized!"
    return f"Found {len(report['sync_issues'])} synchronization issues that need attention."
