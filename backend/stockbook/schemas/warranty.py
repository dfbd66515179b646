"""Pydantic schemas for warranty lookup."""

from datetime import datetime

from stockbook.schemas.common import CamelModel
from stockbook.schemas.invoice import WarrantyOut


class WarrantyLookup(CamelModel):
    product_name: str | None = None
    category: str | None = None
    warranty: WarrantyOut
    customer_name: str
    customer_contact_number: str
    invoice_no: str
    sale_date: datetime
    is_active: bool
    is_deleted: bool = False
    deleted_at: datetime | None = None


class WarrantyLookupResponse(CamelModel):
    success: bool = True
    data: WarrantyLookup
