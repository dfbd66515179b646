"""Adapter for the legacy series-array stock shape.

Older stock documents group series under a brand:

    {"brandName": "Exide",
     "seriesStock": [{"series": "N70", "inStock": 12, "soldCount": 30,
                      "productCost": 14500}, ...]}

`snapshots_from_legacy` flattens them for the sync verifier and
`import_legacy_stock` writes them into StockEntry rows, creating the
product when it does not exist yet.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.models.tenant.product import Product
from stockbook.models.tenant.stock_entry import StockEntry
from stockbook.services.sync_verifier import StockSnapshot
from stockbook.services.warranty import classify_product_type

logger = logging.getLogger(__name__)


def snapshots_from_legacy(documents: Iterable[dict]) -> list[StockSnapshot]:
    snapshots = []
    for doc in documents:
        brand = doc.get("brandName")
        if not brand:
            logger.warning("Skipping legacy stock document without brandName")
            continue
        for series in doc.get("seriesStock") or []:
            name = series.get("series")
            if not name:
                continue
            snapshots.append(StockSnapshot(
                brand_name=brand,
                series_name=name,
                sold_count=int(series.get("soldCount") or 0),
                in_stock=int(series.get("inStock") or 0),
                product_cost=float(series.get("productCost") or 0),
            ))
    return snapshots


async def import_legacy_stock(
    db: AsyncSession, client_id: str, documents: Iterable[dict]
) -> dict[str, int]:
    """Upsert legacy stock into StockEntry rows.  Returns counts."""
    created = updated = 0
    for snap in snapshots_from_legacy(documents):
        entry = (await db.execute(
            select(StockEntry).where(
                StockEntry.client_id == client_id,
                StockEntry.brand_name == snap.brand_name,
                StockEntry.series_name == snap.series_name,
            )
        )).scalar_one_or_none()

        if entry is None:
            product = Product(
                client_id=client_id,
                name=f"{snap.brand_name} {snap.series_name}",
                brand_name=snap.brand_name,
                series_name=snap.series_name,
                product_type=classify_product_type(snap.series_name),
            )
            db.add(product)
            await db.flush()
            db.add(StockEntry(
                client_id=client_id,
                product_id=product.id,
                brand_name=snap.brand_name,
                series_name=snap.series_name,
                in_stock=snap.in_stock,
                sold_count=snap.sold_count,
                product_cost=snap.product_cost,
            ))
            created += 1
        else:
            entry.in_stock = snap.in_stock
            entry.sold_count = snap.sold_count
            entry.product_cost = snap.product_cost
            updated += 1

    await db.flush()
    logger.info("Imported legacy stock for %s: %d created, %d updated", client_id, created, updated)
    return {"created": created, "updated": updated}
