"""Amount, status, date and diff rules shared by invoice create and edit.

Amounts are rounded to 2 decimals before any comparison so that float
noise (0.1 + 0.2) never turns a fully paid invoice into a partial one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from stockbook.middleware.exceptions import ValidationFailedError

PAID = "paid"
PARTIAL = "partial"
PENDING = "pending"


def money(value: float | int | None) -> float:
    return round(float(value or 0), 2)


@dataclass(frozen=True)
class Totals:
    total_amount: float
    received_amount: float
    batteries_rate: float
    remaining_amount: float


def compute_totals(lines: list[dict], received: float, batteries: float) -> Totals:
    """Sum line totals and check that payments fit inside them.

    remaining = total - received - batteries, and never negative.
    """
    received = money(received)
    batteries = money(batteries)
    if received < 0:
        raise ValidationFailedError("Received amount cannot be negative")
    if batteries < 0:
        raise ValidationFailedError("Batteries rate cannot be negative")

    total = money(sum(line["total_price"] for line in lines))
    if total <= 0:
        raise ValidationFailedError("Invoice total must be greater than 0")
    if received > total:
        raise ValidationFailedError("Received amount cannot exceed total amount")
    if batteries > total:
        raise ValidationFailedError("Batteries rate cannot exceed total amount")
    if money(received + batteries) > total:
        raise ValidationFailedError(
            "Received amount plus batteries rate cannot exceed total amount"
        )

    return Totals(
        total_amount=total,
        received_amount=received,
        batteries_rate=batteries,
        remaining_amount=money(total - received - batteries),
    )


def top_up_total(payments: list[dict] | None) -> float:
    return money(sum(money(p.get("amount")) for p in payments or []))


def balance_after_top_ups(totals: Totals, payments: list[dict] | None) -> float:
    """Remaining amount once recorded top-up payments are taken off."""
    paid = top_up_total(payments)
    remaining = money(totals.remaining_amount - paid)
    if remaining < 0:
        raise ValidationFailedError(
            f"Recorded payments ({paid:.2f}) exceed the new balance "
            f"({totals.remaining_amount:.2f})"
        )
    return remaining


def status_on_create(totals: Totals) -> str:
    return PAID if totals.remaining_amount == 0 else PARTIAL


def status_on_edit(totals: Totals) -> str:
    if totals.remaining_amount == 0:
        return PAID
    if totals.received_amount == 0 and totals.batteries_rate == 0:
        return PENDING
    return PARTIAL


def status_for_balance(remaining: float, total: float) -> str:
    """Status after a top-up payment is added or reverted."""
    remaining = money(remaining)
    if remaining <= 0:
        return PAID
    if remaining >= money(total):
        return PENDING
    return PARTIAL


def is_pay_later(methods: list[str]) -> bool:
    return any("pay later" in m.lower() for m in methods)


def resolve_invoice_date(
    use_custom_date: bool,
    custom_date: date | None,
    today: date,
    now: datetime,
) -> datetime:
    """Invoice date: `now`, or the validated custom date at midnight."""
    if not use_custom_date:
        return now
    if custom_date is None:
        raise ValidationFailedError("Custom date is required when custom date is enabled")
    if custom_date > today:
        raise ValidationFailedError("Custom date cannot be in the future")
    return datetime.combine(custom_date, time.min)


# ── Edit diff ───────────────────────────────────────────────

CUSTOMER_FIELDS = ("customer_name", "customer_address", "customer_contact_number")
PAYMENT_FIELDS = ("payment_method", "received_amount", "batteries_rate")


def _line_key(line: dict) -> str:
    return line.get("product_id") or f"{line.get('brand_name')}|{line.get('series_name')}"


def _line_label(line: dict) -> str:
    return line.get("series_name") or line.get("product_name") or _line_key(line)


def _day(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def diff_invoices(old: dict, new: dict) -> list[dict]:
    """Structured changes between two invoice dicts (snake_case keys).

    Each change is {field, old_value, new_value, type} with type one of
    customer | payment | product | date.  Added lines have old_value None,
    removed lines have new_value None.
    """
    changes: list[dict] = []

    def _change(field, old_value, new_value, kind):
        changes.append({
            "field": field,
            "old_value": old_value,
            "new_value": new_value,
            "type": kind,
        })

    for field in CUSTOMER_FIELDS:
        if old.get(field) != new.get(field):
            _change(field, old.get(field), new.get(field), "customer")

    for field in PAYMENT_FIELDS:
        old_value, new_value = old.get(field), new.get(field)
        if field != "payment_method":
            old_value, new_value = money(old_value), money(new_value)
        if old_value != new_value:
            _change(field, old_value, new_value, "payment")

    old_lines = {_line_key(line): line for line in old.get("products") or []}
    new_lines = {_line_key(line): line for line in new.get("products") or []}

    for key, line in new_lines.items():
        label = _line_label(line)
        before = old_lines.get(key)
        if before is None:
            _change(f"{label} (added)", None, line.get("quantity"), "product")
            continue
        if before.get("quantity") != line.get("quantity"):
            _change(f"{label} quantity", before.get("quantity"), line.get("quantity"), "product")
        if money(before.get("price")) != money(line.get("price")):
            _change(f"{label} price", money(before.get("price")), money(line.get("price")), "product")

    for key, line in old_lines.items():
        if key not in new_lines:
            _change(f"{_line_label(line)} (removed)", line.get("quantity"), None, "product")

    old_day, new_day = _day(old.get("created_date")), _day(new.get("created_date"))
    if old_day != new_day:
        _change("invoice_date", old_day, new_day, "date")

    return changes
