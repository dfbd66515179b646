"""Pydantic schemas for invoice create / edit / delete / payments / listing."""

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from stockbook.schemas.common import CamelModel, Pagination


# ── Lines ───────────────────────────────────────────────────

class ProductLineIn(CamelModel):
    """One line of `productDetail[]`.

    The warranty fields also accept the historical "warrenty" spelling.
    """
    product_id: str | None = None
    product_name: str | None = None
    brand_name: str | None = None
    series_name: str | None = Field(
        default=None, validation_alias=AliasChoices("seriesName", "series_name", "series"),
    )
    price: float = Field(..., gt=0)
    quantity: int = Field(..., gt=0)

    warranty_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("warrantyCode", "warranty_code", "warrentyCode"),
    )
    warranty_start_date: date | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "warrantyStartDate", "warranty_start_date", "warrentyStartDate",
        ),
    )
    warranty_duration: int | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "warrantyDuration", "warranty_duration", "warrentyDuration",
        ),
    )
    battery_details: dict | None = None

    @field_validator("warranty_duration", mode="before")
    @classmethod
    def _blank_duration(cls, v):
        if v in ("", None):
            return None
        return v

    @field_validator("warranty_start_date", mode="before")
    @classmethod
    def _blank_start(cls, v):
        if v in ("", None):
            return None
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


class WarrantyOut(CamelModel):
    code: str
    start_date: date
    end_date: date
    duration_months: int


class ProductLineOut(CamelModel):
    product_id: str | None = None
    product_name: str | None = None
    brand_name: str | None = None
    series_name: str | None = None
    product_type: str | None = None
    price: float
    quantity: int
    total_price: float
    warranty: WarrantyOut | None = None
    category: str | None = None
    description: str | None = None
    specifications: dict | None = None
    battery_details: dict | None = None


# ── Requests ────────────────────────────────────────────────

def _require_text(value: str, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{field} is required")
    return str(value).strip()


class InvoiceCreate(CamelModel):
    customer_name: str
    customer_address: str
    customer_contact_number: str
    customer_type: str | None = None
    customer_id: str | None = None
    vehicle_no: str | None = None

    payment_method: list[str] = Field(..., min_length=1)
    received_amount: float = Field(default=0.0, ge=0)
    batteries_rate: float = Field(default=0.0, ge=0)
    product_detail: list[ProductLineIn] = Field(..., min_length=1)

    use_custom_date: bool = False
    custom_date: date | None = None
    selected_client_id: str | None = None

    # Dedup inputs: submission time (ms) and an optional stable token
    submitted_at: int | None = None
    request_token: str | None = None

    @field_validator("customer_name")
    @classmethod
    def _name(cls, v):
        return _require_text(v, "Customer name")

    @field_validator("customer_address")
    @classmethod
    def _address(cls, v):
        return _require_text(v, "Customer address")

    @field_validator("customer_contact_number")
    @classmethod
    def _contact(cls, v):
        return _require_text(v, "Customer contact number")

    @field_validator("payment_method")
    @classmethod
    def _methods(cls, v):
        methods = [m.strip() for m in v if m and m.strip()]
        if not methods:
            raise ValueError("At least one payment method is required")
        return methods

    @field_validator("received_amount", "batteries_rate", mode="before")
    @classmethod
    def _blank_amount(cls, v):
        if v in ("", None):
            return 0.0
        return v

    @field_validator("custom_date", mode="before")
    @classmethod
    def _blank_custom_date(cls, v):
        if v in ("", None):
            return None
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


class InvoiceEdit(InvoiceCreate):
    id: str
    edit_reason: str | None = None


class InvoiceDelete(CamelModel):
    id: str


class PaymentAdd(CamelModel):
    id: str
    additional_payment: float
    payment_method: list[str] = Field(default_factory=list)


class PaymentRevert(CamelModel):
    invoice_id: str
    payment_index: int = Field(..., ge=0)


# ── Responses ───────────────────────────────────────────────

class AdditionalPaymentOut(CamelModel):
    amount: float
    payment_method: list[str]
    added_date: datetime


class EditChangeOut(CamelModel):
    field: str
    old_value: Any = None
    new_value: Any = None
    type: str


class EditEntryOut(CamelModel):
    edited_at: datetime
    edit_reason: str | None = None
    changes: list[EditChangeOut]


class InvoiceOut(CamelModel):
    id: str
    invoice_no: str
    client_id: str
    customer_name: str
    customer_address: str
    customer_contact_number: str
    customer_type: str | None = None
    customer_id: str | None = None
    vehicle_no: str | None = None
    products: list[ProductLineOut]
    payment_method: list[str]
    total_amount: float
    received_amount: float
    batteries_rate: float
    remaining_amount: float
    payment_status: str
    is_pay_later: bool
    additional_payments: list[AdditionalPaymentOut] = []
    edit_history: list[EditEntryOut] = []
    created_date: datetime
    created_at: datetime
    updated_at: datetime


class InvoiceListResponse(CamelModel):
    success: bool = True
    data: list[InvoiceOut]
    pagination: Pagination
    message: str | None = None


class InvoiceCreated(CamelModel):
    message: str
    invoice_no: str
    invoice_id: str


class UpdatedInvoiceSummary(CamelModel):
    invoice_no: str
    total_amount: float
    payment_status: str
    products_count: int


class InvoiceEdited(CamelModel):
    message: str
    updated_invoice: UpdatedInvoiceSummary


class InvoiceDeleted(CamelModel):
    message: str
    deleted_invoice_no: str
    actions_completed: list[str]


class PaymentAdded(CamelModel):
    message: str
    remaining_amount: float
    payment_status: str


class PaymentReverted(CamelModel):
    message: str
    reverted_amount: float
    new_remaining_amount: float
    payment_status: str
