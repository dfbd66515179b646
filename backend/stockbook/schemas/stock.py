"""Pydantic schemas for catalog products and stock entries."""

from pydantic import Field

from stockbook.schemas.common import CamelModel


class ProductCreate(CamelModel):
    """New catalog product with its opening stock.

    `product_type` is inferred from the series name when omitted.
    """
    name: str | None = None
    brand_name: str = Field(..., min_length=1)
    series_name: str = Field(..., min_length=1)
    product_type: str | None = None  # battery | tonic | accessory | other
    category: str | None = None
    description: str | None = None
    specifications: dict | None = None
    price: float = Field(default=0.0, ge=0)

    in_stock: int = Field(default=0, ge=0)
    product_cost: float = Field(default=0.0, ge=0)


class StockReceive(CamelModel):
    product_id: str | None = None
    brand_name: str | None = None
    series_name: str | None = None
    quantity: int = Field(..., gt=0)


class StockEntryOut(CamelModel):
    id: str
    product_id: str
    brand_name: str
    series_name: str
    product_type: str | None = None
    in_stock: int
    sold_count: int
    product_cost: float
