"""Invoice snapshots kept after destructive changes.

ArchivedInvoice      full copy of an invoice taken right before deletion.
InvoiceEditHistory   full copy of an invoice taken right before an edit.

Both are append-only and written on a best-effort basis.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base, ClientScopedMixin


class ArchivedInvoice(ClientScopedMixin, Base):
    __tablename__ = "archived_invoices"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    invoice_no: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    original_id: Mapped[str] = mapped_column(String(36), nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    archived_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class InvoiceEditHistory(ClientScopedMixin, Base):
    __tablename__ = "invoice_edit_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    invoice_no: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    original_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    edited_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
