"""InvoiceCounter — last issued invoice number per client.

Incremented with a single UPDATE so concurrent creates never read the
same value (see utils/numbering.py).
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base


class InvoiceCounter(Base):
    __tablename__ = "invoice_counters"

    # "invoice:<client_id>"
    name: Mapped[str] = mapped_column(String(80), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
