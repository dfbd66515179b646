"""Stock ledger — moves units between `in_stock` and `sold_count`.

Every mutation is a single conditional UPDATE so two requests racing for
the last units cannot both succeed:

    UPDATE stock_entries
       SET in_stock = in_stock - :qty, sold_count = sold_count + :qty
     WHERE id = :id AND in_stock >= :qty AND in_stock > 0

Zero rows updated means the stock was not there, and the caller gets
InsufficientStockError.  Nothing is ever clamped.

Entries are addressed by StockKey, either a product id or the legacy
(brand, series) pair.  Both resolve to the same row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.middleware.exceptions import (
    InsufficientStockError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from stockbook.models.tenant.stock_entry import StockEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockKey:
    product_id: str | None = None
    brand_name: str | None = None
    series_name: str | None = None

    def __post_init__(self):
        if not self.product_id and not (self.brand_name and self.series_name):
            raise ValueError("StockKey needs a product_id or a brand/series pair")

    @classmethod
    def for_line(cls, line: dict) -> "StockKey":
        """Key for an invoice line: product id when present, else brand/series."""
        if line.get("product_id"):
            return cls(product_id=line["product_id"])
        return cls(brand_name=line.get("brand_name"), series_name=line.get("series_name"))

    @property
    def label(self) -> str:
        if self.brand_name and self.series_name:
            return f"{self.brand_name} {self.series_name}"
        return f"product {self.product_id}"


async def get_entry(db: AsyncSession, client_id: str, key: StockKey) -> StockEntry:
    """Load the stock row for a key or raise ResourceNotFoundError."""
    stmt = select(StockEntry).where(StockEntry.client_id == client_id)
    if key.product_id:
        stmt = stmt.where(StockEntry.product_id == key.product_id)
    else:
        stmt = stmt.where(
            StockEntry.brand_name == key.brand_name,
            StockEntry.series_name == key.series_name,
        )
    entry = (await db.execute(stmt)).scalar_one_or_none()
    if entry is None:
        raise ResourceNotFoundError("Stock entry", key.label)
    return entry


def _label(entry: StockEntry) -> str:
    return f"{entry.brand_name} {entry.series_name}"


def _check_quantity(qty: int) -> None:
    if qty <= 0:
        raise ValidationFailedError("Quantity must be a positive number")


async def check_available(
    db: AsyncSession, client_id: str, key: StockKey, qty: int
) -> StockEntry:
    """Pre-flight read.  Same rule as the decrement, without writing."""
    _check_quantity(qty)
    entry = await get_entry(db, client_id, key)
    if entry.in_stock <= 0 or qty > entry.in_stock:
        raise InsufficientStockError(_label(entry), entry.in_stock, qty)
    return entry


async def decrement_and_record_sale(
    db: AsyncSession, client_id: str, key: StockKey, qty: int
) -> StockEntry:
    """Move `qty` units from in_stock to sold_count, or fail atomically."""
    _check_quantity(qty)
    entry = await get_entry(db, client_id, key)

    result = await db.execute(
        update(StockEntry)
        .where(
            StockEntry.id == entry.id,
            StockEntry.in_stock > 0,
            StockEntry.in_stock >= qty,
        )
        .values(
            in_stock=StockEntry.in_stock - qty,
            sold_count=StockEntry.sold_count + qty,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(entry)

    if result.rowcount == 0:
        raise InsufficientStockError(_label(entry), entry.in_stock, qty)

    logger.debug(
        "Stock %s: -%d (in_stock=%d, sold_count=%d)",
        _label(entry), qty, entry.in_stock, entry.sold_count,
    )
    return entry


async def restore_from_sale(
    db: AsyncSession, client_id: str, key: StockKey, qty: int
) -> StockEntry:
    """Reverse a sale: in_stock += qty, sold_count -= qty.

    sold_count never goes below zero.  If it would, it stops at zero and a
    warning is logged, since that means the ledger had already drifted.
    """
    _check_quantity(qty)
    entry = await get_entry(db, client_id, key)

    if entry.sold_count < qty:
        logger.warning(
            "Restoring %d units of %s but sold_count is only %d; flooring at 0",
            qty, _label(entry), entry.sold_count,
        )

    await db.execute(
        update(StockEntry)
        .where(StockEntry.id == entry.id)
        .values(
            in_stock=StockEntry.in_stock + qty,
            sold_count=case(
                (StockEntry.sold_count >= qty, StockEntry.sold_count - qty),
                else_=0,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(entry)
    return entry


async def receive_stock(
    db: AsyncSession, client_id: str, key: StockKey, qty: int
) -> StockEntry:
    """Stock intake: in_stock += qty, sold_count untouched."""
    _check_quantity(qty)
    entry = await get_entry(db, client_id, key)
    await db.execute(
        update(StockEntry)
        .where(StockEntry.id == entry.id)
        .values(in_stock=StockEntry.in_stock + qty)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(entry)
    return entry
