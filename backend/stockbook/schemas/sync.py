"""Pydantic schemas for the sales–stock sync verification report."""

from datetime import datetime

from stockbook.schemas.common import CamelModel


class SyncSummary(CamelModel):
    total_products: int
    synced_products: int
    mismatched_products: int
    missing_in_sales: int
    missing_in_stock: int
    total_sales_records: int
    total_stock_records: int


class SyncIssue(CamelModel):
    """One product whose sold_count disagrees with its sales records."""
    product: str
    brand_name: str
    series: str
    stock_sold_count: int
    actual_sales: int
    difference: int  # actual_sales - stock_sold_count
    in_stock: int
    product_cost: float
    issue: str
    severity: str  # High | Medium | Low


class SalesDetail(CamelModel):
    product: str
    actual_sales: int
    stock_sold_count: int
    in_stock: int
    synced: bool


class SyncReport(CamelModel):
    sync_summary: SyncSummary
    sync_issues: list[SyncIssue]
    sales_details: list[SalesDetail]
    is_fully_synced: bool
    verification_date: datetime


class SyncVerificationResponse(CamelModel):
    success: bool = True
    data: SyncReport
    message: str
