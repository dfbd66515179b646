"""SalesRecord — the sales ledger entry mirrored from an invoice.

Keyed by invoice number within a client.  Rewritten when the invoice is
edited and removed when it is deleted; the sync audit reads quantities
from here.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base, ClientScopedMixin


class SalesRecord(ClientScopedMixin, Base):
    __tablename__ = "sales"
    __table_args__ = (
        UniqueConstraint("client_id", "invoice_no", name="uq_sales_client_invoice"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    invoice_no: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    products: Mapped[list] = mapped_column(JSON, default=list)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    payment_method: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
