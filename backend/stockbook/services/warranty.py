"""Warranty calculator and lookup.

Pure helpers:
    add_months(start, months)            calendar-month arithmetic
    warranty_end_date(start, months)     add_months with the 1..120 bound
    classify_product_type(series_name)   legacy series-name heuristic
    is_warranty_exempt(product_type)     tonic lines carry no warranty
    build_warranty(...)                  validate a line's warranty fields

DB lookup:
    find_warranty(db, client_id, code)   live invoices first, then history
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.middleware.exceptions import ValidationFailedError
from stockbook.models.tenant.invoice import Invoice
from stockbook.models.tenant.product import ProductType
from stockbook.models.tenant.warranty_record import WarrantyRecord

logger = logging.getLogger(__name__)

MIN_DURATION_MONTHS = 1
MAX_DURATION_MONTHS = 120
MIN_CODE_LENGTH = 3
SEARCH_BATCH_SIZE = 200

# Codes that mean "this line has no warranty"
NO_WARRANTY_CODES = {"", "no warranty", "n/a", "none"}

_CODE_SPLIT_RE = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class WarrantyTerms:
    code: str
    start_date: date
    end_date: date
    duration_months: int

    def to_json(self) -> dict:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


# ── Date arithmetic ─────────────────────────────────────────

def add_months(start: date, months: int) -> date:
    """Add calendar months to a date.

    A day that does not exist in the target month is clamped to the
    month's last day (2024-01-31 + 1 month → 2024-02-29).
    """
    if isinstance(start, datetime):
        start = start.date()
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def warranty_end_date(start: date, duration_months: int) -> date:
    if not MIN_DURATION_MONTHS <= duration_months <= MAX_DURATION_MONTHS:
        raise ValidationFailedError(
            f"Warranty duration must be between {MIN_DURATION_MONTHS} "
            f"and {MAX_DURATION_MONTHS} months"
        )
    return add_months(start, duration_months)


# ── Classification ──────────────────────────────────────────

def classify_product_type(series_name: str | None) -> ProductType:
    """Infer a product type from a free-text series name.

    Only used when a product is created without an explicit type.  Once
    stored, the type is authoritative and this is never consulted again.
    """
    series = (series_name or "").lower()
    if (
        "tonic" in series
        or "ml" in series
        or "distilled" in series
        or ("battery" in series and "water" in series)
    ):
        return ProductType.TONIC
    return ProductType.BATTERY


def is_warranty_exempt(product_type: ProductType | str | None) -> bool:
    return product_type in (ProductType.TONIC, ProductType.TONIC.value)


def has_warranty_code(code: str | None) -> bool:
    return (code or "").strip().lower() not in NO_WARRANTY_CODES


# ── Validation ──────────────────────────────────────────────

def build_warranty(
    *,
    label: str,
    code: str | None,
    start_date: date | None,
    duration_months: int | None,
    today: date,
) -> WarrantyTerms | None:
    """Validate one line's warranty fields and compute its end date.

    Returns None for lines sold without a warranty.  Raises
    ValidationFailedError naming the line when the data is unusable.
    """
    if not has_warranty_code(code):
        return None

    code = code.strip()
    if len(code) < MIN_CODE_LENGTH:
        raise ValidationFailedError(
            f"Invalid warranty code for {label}. "
            f"Must be at least {MIN_CODE_LENGTH} characters long."
        )
    if start_date is None:
        raise ValidationFailedError(f"Warranty start date is required for {label}")
    if start_date > today:
        raise ValidationFailedError(
            f"Warranty start date cannot be in the future for {label}"
        )
    if duration_months is None or not (
        MIN_DURATION_MONTHS <= duration_months <= MAX_DURATION_MONTHS
    ):
        raise ValidationFailedError(
            f"Invalid warranty duration for {label}. "
            f"Must be between {MIN_DURATION_MONTHS} and {MAX_DURATION_MONTHS} months."
        )

    return WarrantyTerms(
        code=code,
        start_date=start_date,
        end_date=warranty_end_date(start_date, duration_months),
        duration_months=duration_months,
    )


# ── Lookup ──────────────────────────────────────────────────

def code_matches(stored: str | None, wanted: str) -> bool:
    """True if `wanted` is one of the codes in a space/comma separated list.

    A stored entry like "AB12 CD34, EF56" matches "CD34", the whole string,
    and two adjacent parts joined by one space ("AB12 CD34").
    """
    if not stored or not wanted:
        return False
    wanted = wanted.strip()
    if stored.strip() == wanted:
        return True

    codes = [c for c in _CODE_SPLIT_RE.split(stored) if c]
    if wanted in codes:
        return True
    return any(f"{a} {b}" == wanted for a, b in zip(codes, codes[1:]))


def _match_live(invoices, code: str) -> dict | None:
    for invoice in invoices:
        for line in invoice.products or []:
            warranty = line.get("warranty") or {}
            if code_matches(warranty.get("code"), code):
                return {
                    "product_name": line.get("product_name"),
                    "category": line.get("category"),
                    "warranty": warranty,
                    "customer_name": invoice.customer_name,
                    "customer_contact_number": invoice.customer_contact_number,
                    "invoice_no": invoice.invoice_no,
                    "sale_date": invoice.created_date,
                    "is_deleted": False,
                    "deleted_at": None,
                }
    return None


async def find_warranty(db: AsyncSession, client_id: str, code: str) -> dict | None:
    """Locate a warranty by code.

    Live invoices are searched first.  When the invoice has since been
    deleted, the latest warranty_history snapshot answers instead.
    """
    code = code.strip()
    if not code:
        raise ValidationFailedError("Warranty code is required")

    # The JSON column's text form escapes non-ASCII codes, so matching
    # happens on the decoded lines rather than in SQL.
    offset = 0
    while True:
        invoices = (await db.execute(
            select(Invoice)
            .where(Invoice.client_id == client_id)
            .order_by(Invoice.created_date.desc(), Invoice.id)
            .offset(offset)
            .limit(SEARCH_BATCH_SIZE)
        )).scalars().all()
        match = _match_live(invoices, code)
        if match is not None:
            return match
        if len(invoices) < SEARCH_BATCH_SIZE:
            break
        offset += SEARCH_BATCH_SIZE

    history = await db.execute(
        select(WarrantyRecord)
        .where(
            WarrantyRecord.client_id == client_id,
            WarrantyRecord.warranty_code.contains(code),
        )
        .order_by(WarrantyRecord.recorded_at.desc())
    )
    for record in history.scalars():
        if not code_matches(record.warranty_code, code):
            continue
        line = record.product_details or {}
        return {
            "product_name": line.get("product_name"),
            "category": line.get("category"),
            "warranty": line.get("warranty") or {},
            "customer_name": record.customer_name,
            "customer_contact_number": record.customer_contact_number,
            "invoice_no": record.original_invoice_no,
            "sale_date": record.recorded_at,
            "is_deleted": record.event == "deleted",
            "deleted_at": record.deleted_at,
        }

    logger.info("Warranty code %r not found for client %s", code, client_id)
    return None
