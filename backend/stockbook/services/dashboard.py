"""Dashboard metrics for one client.

Inventory:  total units in stock, inventory value at cost, low / out of
            stock counts.
Revenue:    sales count, revenue, average order value, profit and margin
            over a date window (default: last `revenue_window_days` days).
Balances:   outstanding remaining amounts across all invoices.
Sync:       the sales–stock audit report.

Results are cached per client in Redis for a short TTL and invalidated
whenever an invoice changes.
"""

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.config import settings
from stockbook.middleware.exceptions import AuditTimeoutError
from stockbook.models.tenant.invoice import Invoice
from stockbook.models.tenant.sales_record import SalesRecord
from stockbook.models.tenant.stock_entry import StockEntry
from stockbook.services.invoice_validation import money
from stockbook.services.sync_audit import run_sync_audit
from stockbook.services.sync_verifier import sync_key
from stockbook.utils.cache import cached

logger = logging.getLogger(__name__)


async def _inventory(db: AsyncSession, client_id: str) -> dict:
    threshold = settings.low_stock_threshold
    row = (await db.execute(
        select(
            func.coalesce(func.sum(StockEntry.in_stock), 0),
            func.coalesce(func.sum(StockEntry.in_stock * StockEntry.product_cost), 0),
            func.coalesce(func.sum(case(
                ((StockEntry.in_stock > 0) & (StockEntry.in_stock < threshold), 1),
                else_=0,
            )), 0),
            func.coalesce(func.sum(case((StockEntry.in_stock <= 0, 1), else_=0)), 0),
        ).where(StockEntry.client_id == client_id)
    )).one()
    return {
        "total_products": int(row[0]),
        "total_inventory_value": money(row[1]),
        "low_stock_count": int(row[2]),
        "out_of_stock_count": int(row[3]),
    }


async def _revenue(
    db: AsyncSession, client_id: str, start: date, end: date
) -> dict:
    sales = (await db.execute(
        select(SalesRecord.total_amount, SalesRecord.products).where(
            SalesRecord.client_id == client_id,
            SalesRecord.date >= datetime.combine(start, time.min),
            SalesRecord.date < datetime.combine(end + timedelta(days=1), time.min),
        )
    )).all()

    costs = {
        sync_key(row.brand_name, row.series_name): row.product_cost or 0.0
        for row in (await db.execute(
            select(StockEntry.brand_name, StockEntry.series_name, StockEntry.product_cost)
            .where(StockEntry.client_id == client_id)
        )).all()
    }

    revenue = money(sum(row.total_amount or 0 for row in sales))
    cost = 0.0
    for row in sales:
        for line in row.products or []:
            unit_cost = costs.get(sync_key(line.get("brand_name"), line.get("series_name")), 0.0)
            cost += unit_cost * int(line.get("quantity") or 0)

    profit = money(revenue - cost)
    return {
        "total_sales": len(sales),
        "total_revenue": revenue,
        "average_order_value": money(revenue / len(sales)) if sales else 0.0,
        "total_profit": profit,
        "profit_margin": round(profit / revenue * 100, 1) if revenue > 0 else 0.0,
    }


async def _balances(db: AsyncSession, client_id: str) -> dict:
    row = (await db.execute(
        select(
            func.coalesce(func.sum(Invoice.remaining_amount), 0),
            func.count(func.distinct(Invoice.customer_contact_number)),
        ).where(Invoice.client_id == client_id)
    )).one()
    return {"total_pending": money(row[0]), "total_customers": int(row[1])}


@cached(ttl=settings.dashboard_cache_ttl_seconds, prefix="dashboard")
async def dashboard_metrics(
    db: AsyncSession,
    *,
    client_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    end = end_date or date.today()
    start = start_date or end - timedelta(days=settings.revenue_window_days)

    inventory = await _inventory(db, client_id)
    revenue = await _revenue(db, client_id, start, end)
    balances = await _balances(db, client_id)

    try:
        sync = await run_sync_audit(db, client_id)
    except AuditTimeoutError:
        logger.warning("Dashboard for client %s served without sync verification", client_id)
        sync = None

    return {
        **inventory,
        **revenue,
        **balances,
        "revenue_start_date": start.isoformat(),
        "revenue_end_date": end.isoformat(),
        "sync_verification": sync,
        "alerts": {
            "low_stock": inventory["low_stock_count"],
            "out_of_stock": inventory["out_of_stock_count"],
            "pending_payments": max(balances["total_pending"], 0.0),
            "sync_issues": len(sync["sync_issues"]) if sync else 0,
        },
    }
