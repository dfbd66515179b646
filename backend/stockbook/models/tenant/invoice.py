"""Invoice — a numbered sales document issued by a client to a customer.

Line items, payment methods, top-up payments and the edit diff log are
stored as JSON.  Always assign a new list to these columns rather than
mutating in place, otherwise the change is not flushed.

Line item shape (see schemas/invoice.py ProductLineOut):
    {"product_id", "product_name", "brand_name", "series_name", "product_type",
     "price", "quantity", "total_price", "warranty": {...} | null,
     "category", "description", "specifications", "battery_details"}

Payment status:  pending → partial → paid
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base, ClientScopedMixin


class Invoice(ClientScopedMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("client_id", "invoice_no", name="uq_invoice_client_no"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    invoice_no: Mapped[str] = mapped_column(String(8), nullable=False, index=True)

    # ── Customer ─────────────────────────────────────────────
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_address: Mapped[str] = mapped_column(Text, nullable=False)
    customer_contact_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_type: Mapped[str | None] = mapped_column(String(50))
    customer_id: Mapped[str | None] = mapped_column(String(36))
    vehicle_no: Mapped[str | None] = mapped_column(String(50))

    # ── Lines ────────────────────────────────────────────────
    products: Mapped[list] = mapped_column(JSON, default=list)

    # ── Amounts ──────────────────────────────────────────────
    payment_method: Mapped[list] = mapped_column(JSON, default=list)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    received_amount: Mapped[float] = mapped_column(Float, default=0.0)
    batteries_rate: Mapped[float] = mapped_column(Float, default=0.0)
    remaining_amount: Mapped[float] = mapped_column(Float, nullable=False)
    # paid | partial | pending
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    is_pay_later: Mapped[bool] = mapped_column(Boolean, default=False)
    # [{"amount": 100.0, "payment_method": ["Cash"], "added_date": "..."}]
    additional_payments: Mapped[list] = mapped_column(JSON, default=list)

    # ── History ──────────────────────────────────────────────
    # [{"edited_at", "edit_reason", "changes": [{field, old_value, new_value, type}]}]
    edit_history: Mapped[list] = mapped_column(JSON, default=list)

    # ── Metadata ─────────────────────────────────────────────
    created_date: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    created_by: Mapped[str | None] = mapped_column(String(36))  # user_id
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
