"""Product — a catalog item a client sells.

`product_type` is fixed when the product is created.  Older catalogs
without an explicit type get one inferred from the series name once, at
creation, and it is stored from then on (see services/warranty.py).
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base, ClientScopedMixin


class ProductType(str, enum.Enum):
    BATTERY = "battery"
    TONIC = "tonic"          # battery water / distilled water, no warranty
    ACCESSORY = "accessory"
    OTHER = "other"


class Product(ClientScopedMixin, Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    series_name: Mapped[str] = mapped_column(String(120), nullable=False)
    product_type: Mapped[ProductType] = mapped_column(
        SAEnum(ProductType), default=ProductType.BATTERY, nullable=False
    )

    # Snapshot fields copied onto invoice lines
    category: Mapped[str | None] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    specifications: Mapped[dict | None] = mapped_column(JSON)

    price: Mapped[float] = mapped_column(Float, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
