"""Sales–stock sync verification router.

Endpoints:
    GET /    Run the audit now and return the full report

Read-only: drift is reported, never corrected.  A run that exceeds
SYNC_AUDIT_TIMEOUT_SECONDS returns 504.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.auth.deps import get_client_id, require_permission
from stockbook.database import get_db
from stockbook.middleware.exceptions import ValidationFailedError
from stockbook.models.public.user import User
from stockbook.schemas.sync import SyncVerificationResponse
from stockbook.services.sync_audit import run_sync_audit, sync_message

router = APIRouter()


@router.get("", response_model=SyncVerificationResponse)
async def verify_sync(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    _user: User = Depends(require_permission("reports.read")),
):
    if start_date and end_date and start_date > end_date:
        raise ValidationFailedError("startDate must not be after endDate")

    report = await run_sync_audit(db, client_id, start_date=start_date, end_date=end_date)
    return SyncVerificationResponse(data=report, message=sync_message(report))
