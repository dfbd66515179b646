"""Warranty lookup router.

Endpoints:
    GET /{code}    Find the sale a warranty code belongs to

Deleted invoices still answer from warranty history, flagged isDeleted.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.auth.deps import get_client_id, require_permission
from stockbook.database import get_db
from stockbook.middleware.exceptions import ResourceNotFoundError
from stockbook.models.public.user import User
from stockbook.schemas.warranty import WarrantyLookup, WarrantyLookupResponse
from stockbook.services.warranty import find_warranty

router = APIRouter()


@router.get("/{code}", response_model=WarrantyLookupResponse)
async def lookup_warranty(
    code: str,
    db: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    _user: User = Depends(require_permission("warranty.read")),
):
    found = await find_warranty(db, client_id, code)
    if found is None or not found.get("warranty"):
        raise ResourceNotFoundError("Warranty", code)

    lookup = WarrantyLookup.model_validate({**found, "is_active": False})
    lookup.is_active = not lookup.is_deleted and lookup.warranty.end_date >= date.today()
    return WarrantyLookupResponse(data=lookup)
