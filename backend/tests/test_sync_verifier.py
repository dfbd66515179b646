"""Sales–stock sync verifier tests (pure, no database)."""

from datetime import datetime

import pytest

from stockbook.services.sync_verifier import (
    MISSING_FROM_SALES,
    MISSING_FROM_STOCK,
    OVERCOUNTED,
    UNDERCOUNTED,
    StockSnapshot,
    verify_sales_stock_sync,
)
from stockbook.utils.legacy_stock import snapshots_from_legacy

NOW = datetime(2024, 8, 1, 12, 0)


def _sale(invoice_no, *lines):
    return {
        "invoice_no": invoice_no,
        "products": [
            {"brand_name": b, "series_name": s, "quantity": q} for b, s, q in lines
        ],
    }


@pytest.mark.unit
class TestSyncVerifier:

    def test_fully_synced(self):
        sales = [_sale("00000001", ("Exide", "N70", 3)), _sale("00000002", ("Exide", "N70", 2))]
        stock = [StockSnapshot("Exide", "N70", sold_count=5, in_stock=5)]

        report = verify_sales_stock_sync(sales, stock, now=NOW)

        assert report["is_fully_synced"] is True
        assert report["sync_issues"] == []
        assert report["sync_summary"]["synced_products"] == 1
        assert report["sync_summary"]["total_sales_records"] == 2

    def test_undercounted(self):
        sales = [_sale("00000001", ("Exide", "N70", 7))]
        stock = [StockSnapshot("Exide", "N70", sold_count=5, in_stock=3)]

        report = verify_sales_stock_sync(sales, stock, now=NOW)

        assert report["is_fully_synced"] is False
        [issue] = report["sync_issues"]
        assert issue["issue"] == UNDERCOUNTED
        assert issue["difference"] == 2
        assert issue["severity"] == "Medium"

    def test_overcounted_by_a_lot_is_high(self):
        sales = [_sale("00000001", ("Exide", "N70", 1))]
        stock = [StockSnapshot("Exide", "N70", sold_count=10, in_stock=0)]

        [issue] = verify_sales_stock_sync(sales, stock, now=NOW)["sync_issues"]
        assert issue["issue"] == OVERCOUNTED
        assert issue["difference"] == -9
        assert issue["severity"] == "High"

    def test_missing_from_stock(self):
        sales = [_sale("00000001", ("Osaka", "X9", 4))]

        report = verify_sales_stock_sync(sales, [], now=NOW)

        [issue] = report["sync_issues"]
        assert issue["issue"] == MISSING_FROM_STOCK
        assert issue["severity"] == "High"
        assert report["sync_summary"]["missing_in_stock"] == 1

    def test_sold_without_sales(self):
        stock = [StockSnapshot("Exide", "N70", sold_count=4, in_stock=6)]

        [issue] = verify_sales_stock_sync([], stock, now=NOW)["sync_issues"]
        assert issue["issue"] == MISSING_FROM_SALES
        assert issue["difference"] == -4

    def test_unsold_product_counts_as_synced(self):
        stock = [StockSnapshot("Exide", "N70", sold_count=0, in_stock=10)]

        report = verify_sales_stock_sync([], stock, now=NOW)
        assert report["is_fully_synced"] is True
        assert report["sync_summary"]["synced_products"] == 1

    def test_negative_sold_count_treated_as_zero(self):
        stock = [StockSnapshot("Exide", "N70", sold_count=-3, in_stock=10)]

        assert verify_sales_stock_sync([], stock, now=NOW)["is_fully_synced"] is True

    def test_lines_keyed_by_battery_details(self):
        sales = [{
            "invoice_no": "00000001",
            "products": [{"quantity": 2, "battery_details": {"brandName": "Exide", "series": "N70"}}],
        }]
        stock = [StockSnapshot("Exide", "N70", sold_count=2, in_stock=8)]

        assert verify_sales_stock_sync(sales, stock, now=NOW)["is_fully_synced"] is True

    def test_legacy_stock_documents(self):
        docs = [{
            "brandName": "Exide",
            "seriesStock": [
                {"series": "N70", "inStock": 12, "soldCount": 3, "productCost": 14500},
                {"series": "NS40", "inStock": 5, "soldCount": 0},
            ],
        }]
        sales = [_sale("00000001", ("Exide", "N70", 3))]

        report = verify_sales_stock_sync(sales, snapshots_from_legacy(docs), now=NOW)
        assert report["is_fully_synced"] is True
        assert report["sync_summary"]["total_stock_records"] == 2
