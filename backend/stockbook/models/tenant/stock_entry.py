"""StockEntry — available and cumulative sold quantity for one product.

One row per product.  `in_stock` and `sold_count` always move together:
a sale moves units from the first to the second, a reversal moves them back.
Brand and series are denormalised here so the sync audit can key on them
without joining products.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook.database import Base, ClientScopedMixin


class StockEntry(ClientScopedMixin, Base):
    __tablename__ = "stock_entries"
    __table_args__ = (
        UniqueConstraint("client_id", "brand_name", "series_name", name="uq_stock_series"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), unique=True, nullable=False
    )
    brand_name: Mapped[str] = mapped_column(String(120), nullable=False)
    series_name: Mapped[str] = mapped_column(String(120), nullable=False)

    in_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sold_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    product_cost: Mapped[float] = mapped_column(Float, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    product = relationship("Product", lazy="selectin")
