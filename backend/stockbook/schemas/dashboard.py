"""Pydantic schemas for the dashboard endpoint."""

from stockbook.schemas.common import CamelModel
from stockbook.schemas.sync import SyncReport


class DashboardAlerts(CamelModel):
    low_stock: int
    out_of_stock: int
    pending_payments: float
    sync_issues: int


class DashboardMetrics(CamelModel):
    # Inventory
    total_products: int
    total_inventory_value: float
    low_stock_count: int
    out_of_stock_count: int

    # Revenue over the window
    total_sales: int
    total_revenue: float
    average_order_value: float
    total_profit: float
    profit_margin: float
    revenue_start_date: str
    revenue_end_date: str

    # Balances
    total_pending: float
    total_customers: int

    # None when the audit timed out
    sync_verification: SyncReport | None = None
    alerts: DashboardAlerts
