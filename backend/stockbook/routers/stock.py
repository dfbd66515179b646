"""Stock router — catalog products and stock intake.

Endpoints:
    GET  /            Stock entries for the selected client
    POST /products    Create a product together with its stock entry
    POST /receive     Add received units to an existing entry

Sales never go through here; they move stock via the invoice lifecycle.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.auth.deps import get_client_id, require_permission, resolve_request_client
from stockbook.database import get_db
from stockbook.middleware.exceptions import ValidationFailedError
from stockbook.models.public.user import User
from stockbook.models.tenant.product import Product, ProductType
from stockbook.models.tenant.stock_entry import StockEntry
from stockbook.schemas.stock import ProductCreate, StockEntryOut, StockReceive
from stockbook.services import stock_ledger
from stockbook.services.warranty import classify_product_type
from stockbook.utils.activity import log_activity
from stockbook.utils.cache import invalidate_cache

logger = logging.getLogger(__name__)

router = APIRouter()


def _entry_out(entry: StockEntry, product_type: ProductType | None) -> StockEntryOut:
    return StockEntryOut(
        id=entry.id,
        product_id=entry.product_id,
        brand_name=entry.brand_name,
        series_name=entry.series_name,
        product_type=product_type.value if product_type else None,
        in_stock=entry.in_stock,
        sold_count=entry.sold_count,
        product_cost=entry.product_cost or 0.0,
    )


@router.get("", response_model=list[StockEntryOut])
async def list_stock(
    db: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    _user: User = Depends(require_permission("stock.read")),
):
    result = await db.execute(
        select(StockEntry, Product.product_type)
        .join(Product, Product.id == StockEntry.product_id)
        .where(StockEntry.client_id == client_id)
        .order_by(StockEntry.brand_name, StockEntry.series_name)
    )
    return [_entry_out(entry, product_type) for entry, product_type in result.all()]


@router.post("/products", response_model=StockEntryOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("stock.write")),
):
    client_id = resolve_request_client(request, user)

    if body.product_type:
        try:
            product_type = ProductType(body.product_type.lower())
        except ValueError:
            raise ValidationFailedError(f"Unknown product type: {body.product_type}")
    else:
        product_type = classify_product_type(body.series_name)

    existing = await db.execute(
        select(StockEntry.id).where(
            StockEntry.client_id == client_id,
            StockEntry.brand_name == body.brand_name,
            StockEntry.series_name == body.series_name,
        )
    )
    if existing.scalar_one_or_none():
        raise ValidationFailedError(
            f"Product {body.brand_name} {body.series_name} already exists"
        )

    product = Product(
        client_id=client_id,
        name=body.name or f"{body.brand_name} {body.series_name}",
        brand_name=body.brand_name,
        series_name=body.series_name,
        product_type=product_type,
        category=body.category,
        description=body.description,
        specifications=body.specifications,
        price=body.price,
    )
    db.add(product)
    await db.flush()

    entry = StockEntry(
        client_id=client_id,
        product_id=product.id,
        brand_name=body.brand_name,
        series_name=body.series_name,
        in_stock=body.in_stock,
        sold_count=0,
        product_cost=body.product_cost,
    )
    db.add(entry)

    await log_activity(
        db, user, client_id,
        action="created", entity_type="product",
        entity_id=product.id, entity_code=f"{body.brand_name} {body.series_name}",
        summary=f"Product {product.name} ({product_type.value}) with {body.in_stock} in stock",
    )
    await db.commit()
    await invalidate_cache("dashboard:*")

    logger.info("Created product %s for client %s", product.name, client_id)
    return _entry_out(entry, product_type)


@router.post("/receive", response_model=StockEntryOut)
async def receive_stock(
    body: StockReceive,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("stock.write")),
):
    client_id = resolve_request_client(request, user)
    if not body.product_id and not (body.brand_name and body.series_name):
        raise ValidationFailedError("Provide productId or brandName and seriesName")

    key = stock_ledger.StockKey(
        product_id=body.product_id,
        brand_name=body.brand_name,
        series_name=body.series_name,
    )
    entry = await stock_ledger.receive_stock(db, client_id, key, body.quantity)

    await log_activity(
        db, user, client_id,
        action="received", entity_type="stock",
        entity_id=entry.id, entity_code=f"{entry.brand_name} {entry.series_name}",
        summary=f"Received {body.quantity} units (in stock: {entry.in_stock})",
    )
    await db.commit()
    await invalidate_cache("dashboard:*")
    product_type = (await db.execute(
        select(Product.product_type).where(Product.id == entry.product_id)
    )).scalar_one_or_none()
    return _entry_out(entry, product_type)
