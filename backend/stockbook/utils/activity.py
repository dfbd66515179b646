"""Helper for recording activity log entries.

Usage:
    await log_activity(
        db, user, client_id, action="created", entity_type="invoice",
        entity_id=invoice.id, entity_code=invoice.invoice_no,
        summary="Invoice 00000042 for Jane Doe (3 lines, 12,500.00)",
    )

The row joins the current transaction; it commits or rolls back with the
change it describes.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from stockbook.models.public.user import User
from stockbook.models.tenant.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    user: User,
    client_id: str,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    db.add(ActivityLog(
        client_id=client_id,
        user_id=user.id,
        user_name=user.full_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary,
        details=details,
    ))
