"""WarrantyRecord — append-only warranty history.

A row is written whenever a warranted line is created, edited or its
invoice deleted, so a warranty can still be looked up after the invoice
is gone.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base, ClientScopedMixin


class WarrantyRecord(ClientScopedMixin, Base):
    __tablename__ = "warranty_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    warranty_code: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_contact_number: Mapped[str | None] = mapped_column(String(50))
    customer_address: Mapped[str | None] = mapped_column(Text)

    # The full invoice line at the time of the event
    product_details: Mapped[dict] = mapped_column(JSON, nullable=False)

    original_invoice_no: Mapped[str] = mapped_column(String(8), nullable=False)
    original_invoice_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # created | updated | deleted
    event: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
