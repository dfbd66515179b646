"""Aggregate model imports for Alembic auto-detection."""

from stockbook.models.public.client import Client  # noqa: F401
from stockbook.models.public.user import User, UserRole  # noqa: F401

from stockbook.models.tenant.product import Product, ProductType  # noqa: F401
from stockbook.models.tenant.stock_entry import StockEntry  # noqa: F401
from stockbook.models.tenant.invoice import Invoice  # noqa: F401
from stockbook.models.tenant.invoice_counter import InvoiceCounter  # noqa: F401
from stockbook.models.tenant.sales_record import SalesRecord  # noqa: F401
from stockbook.models.tenant.warranty_record import WarrantyRecord  # noqa: F401
from stockbook.models.tenant.invoice_archive import ArchivedInvoice, InvoiceEditHistory  # noqa: F401
from stockbook.models.tenant.activity_log import ActivityLog  # noqa: F401
