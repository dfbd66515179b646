"""Dashboard router.

Endpoints:
    GET /    Inventory, revenue, balances, sync verification and alerts

Cached per client for DASHBOARD_CACHE_TTL_SECONDS; any invoice change
invalidates the cache.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.auth.deps import get_client_id, require_permission
from stockbook.database import get_db
from stockbook.models.public.user import User
from stockbook.schemas.dashboard import DashboardMetrics
from stockbook.services.dashboard import dashboard_metrics

router = APIRouter()


@router.get("", response_model=DashboardMetrics)
async def get_dashboard(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    _user: User = Depends(require_permission("reports.read")),
):
    return await dashboard_metrics(
        db, client_id=client_id, start_date=start_date, end_date=end_date
    )
