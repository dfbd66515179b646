"""Client-owned models.  Every table here carries a client_id column
(except the counter, which embeds it in its key)."""

# ── Catalog & stock ──────────────────────────────────────────
from stockbook.models.tenant.product import Product, ProductType
from stockbook.models.tenant.stock_entry import StockEntry

# ── Sales ────────────────────────────────────────────────────
from stockbook.models.tenant.invoice import Invoice
from stockbook.models.tenant.invoice_counter import InvoiceCounter
from stockbook.models.tenant.sales_record import SalesRecord

# ── Audit ────────────────────────────────────────────────────
from stockbook.models.tenant.activity_log import ActivityLog
from stockbook.models.tenant.invoice_archive import ArchivedInvoice, InvoiceEditHistory
from stockbook.models.tenant.warranty_record import WarrantyRecord

__all__ = [
    "Product", "ProductType", "StockEntry",
    "Invoice", "InvoiceCounter", "SalesRecord",
    "ActivityLog", "ArchivedInvoice", "InvoiceEditHistory", "WarrantyRecord",
]
