"""Sales–stock sync verifier.

Compares the quantities recorded in the sales ledger against the
`sold_count` each stock entry claims.  Pure: takes plain data, returns a
report, touches nothing.  The DB-facing, time-boxed wrapper lives in
services/sync_audit.py.

Issue kinds:
    Stock undercounted                                  sales > sold_count
    Stock overcounted                                   sales < sold_count
    Product in sales but missing from stock             no stock entry at all
    Product in stock with soldCount but no sales records

Severity: "High" when the gap is more than SEVERITY_THRESHOLD units (and
always for products missing from stock), otherwise "Medium".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

logger = logging.getLogger(__name__)

SEVERITY_THRESHOLD = 5

UNDERCOUNTED = "Stock undercounted"
OVERCOUNTED = "Stock overcounted"
MISSING_FROM_STOCK = "Product in sales but missing from stock"
MISSING_FROM_SALES = "Product in stock with soldCount but no sales records"


@dataclass(frozen=True)
class StockSnapshot:
    brand_name: str
    series_name: str
    sold_count: int
    in_stock: int
    product_cost: float = 0.0


def sync_key(brand: str, series: str) -> str:
    return f"{brand}|{series}"


def _severity(difference: int) -> str:
    return "High" if abs(difference) > SEVERITY_THRESHOLD else "Medium"


def _line_identity(line: dict) -> tuple[str | None, str | None]:
    """Brand and series of a sales line.

    Lines written by this service carry `brand_name`/`series_name`; older
    imported ones only have them inside `battery_details`.
    """
    details = line.get("battery_details") or {}
    brand = line.get("brand_name") or details.get("brand_name") or details.get("brandName")
    series = line.get("series_name") or details.get("series_name") or details.get("series")
    return brand, series


def build_sales_map(sales: Iterable[dict]) -> tuple[dict[str, int], int]:
    """Sum sold quantities per brand|series.  Returns (map, sales_record_count)."""
    sales_map: dict[str, int] = {}
    record_count = 0
    for sale in sales:
        record_count += 1
        for line in sale.get("products") or []:
            brand, series = _line_identity(line)
            if not brand or not series:
                logger.warning(
                    "Skipping sales line without brand/series on invoice %s",
                    sale.get("invoice_no"),
                )
                continue
            qty = int(line.get("quantity") or 0)
            key = sync_key(brand, series)
            sales_map[key] = sales_map.get(key, 0) + qty
    return sales_map, record_count


def build_stock_map(stock: Iterable[StockSnapshot]) -> dict[str, StockSnapshot]:
    stock_map: dict[str, StockSnapshot] = {}
    for item in stock:
        sold = item.sold_count
        if sold < 0:
            logger.warning(
                "Negative sold_count %d for %s %s; treating as 0",
                sold, item.brand_name, item.series_name,
            )
            sold = 0
        stock_map[sync_key(item.brand_name, item.series_name)] = StockSnapshot(
            brand_name=item.brand_name,
            series_name=item.series_name,
            sold_count=sold,
            in_stock=item.in_stock,
            product_cost=item.product_cost,
        )
    return stock_map


def verify_sales_stock_sync(
    sales: Iterable[dict],
    stock: Iterable[StockSnapshot],
    *,
    now: datetime | None = None,
) -> dict:
    """Audit sales against stock.

    `sales` are sales-record dicts with a `products` list.  Output keys are
    ordered deterministically (stock keys sorted, then sales-only keys
    sorted) so two runs over the same data produce identical reports.
    """
    sales_map, sales_record_count = build_sales_map(sales)
    stock_map = build_stock_map(stock)

    issues: list[dict] = []
    details: list[dict] = []
    synced = 0
    mismatched = 0
    missing_in_stock = 0
    missing_in_sales = 0

    for key in sorted(stock_map):
        item = stock_map[key]
        actual_sales = sales_map.get(key)

        if actual_sales is None:
            if item.sold_count > 0:
                missing_in_sales += 1
                issues.append({
                    "product": f"{item.brand_name} {item.series_name}",
                    "brand_name": item.brand_name,
                    "series": item.series_name,
                    "stock_sold_count": item.sold_count,
                    "actual_sales": 0,
                    "difference": -item.sold_count,
                    "in_stock": item.in_stock,
                    "product_cost": item.product_cost,
                    "issue": MISSING_FROM_SALES,
                    "severity": "Medium",
                })
            else:
                synced += 1
            continue

        difference = actual_sales - item.sold_count
        details.append({
            "product": f"{item.brand_name} {item.series_name}",
            "actual_sales": actual_sales,
            "stock_sold_count": item.sold_count,
            "in_stock": item.in_stock,
            "synced": difference == 0,
        })
        if difference == 0:
            synced += 1
            continue

        mismatched += 1
        issues.append({
            "product": f"{item.brand_name} {item.series_name}",
            "brand_name": item.brand_name,
            "series": item.series_name,
            "stock_sold_count": item.sold_count,
            "actual_sales": actual_sales,
            "difference": difference,
            "in_stock": item.in_stock,
            "product_cost": item.product_cost,
            "issue": UNDERCOUNTED if difference > 0 else OVERCOUNTED,
            "severity": _severity(difference),
        })

    for key in sorted(set(sales_map) - set(stock_map)):
        brand, series = key.split("|", 1)
        missing_in_stock += 1
        issues.append({
            "product": f"{brand} {series}",
            "brand_name": brand,
            "series": series,
            "stock_sold_count": 0,
            "actual_sales": sales_map[key],
            "difference": sales_map[key],
            "in_stock": 0,
            "product_cost": 0.0,
            "issue": MISSING_FROM_STOCK,
            "severity": "High",
        })

    return {
        "sync_summary": {
            "total_products": len(stock_map),
            "synced_products": synced,
            "mismatched_products": mismatched,
            "missing_in_sales": missing_in_sales,
            "missing_in_stock": missing_in_stock,
            "total_sales_records": sales_record_count,
            "total_stock_records": len(stock_map),
        },
        "sync_issues": issues,
        "sales_details": details,
        "is_fully_synced": not issues,
        "verification_date": (now or datetime.utcnow()).isoformat(),
    }
