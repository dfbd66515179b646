"""Application lifespan and the daily sync-audit loop.

On startup:
  - build the request deduplicator and the product lookup cache and put
    them on `app.state`
  - start an asyncio loop that audits every active client once a day at
    SYNC_AUDIT_HOUR (UTC), unless ENABLE_SCHEDULER=false

On shutdown: cancel the loop and close Redis.

Audit results are only logged; drift is reported, never auto-corrected.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from sqlalchemy import select

from stockbook.config import settings
from stockbook.database import async_session
from stockbook.models.public.client import Client
from stockbook.services.dedup import build_deduplicator, build_lookup_cache
from stockbook.utils.cache import close_redis

logger = logging.getLogger("stockbook.scheduler")


async def _audit_client(client_id: str) -> dict | None:
    """Run the sync audit for a single client; None on failure."""
    from stockbook.services.sync_audit import run_sync_audit

    try:
        async with async_session() as db:
            return await run_sync_audit(db, client_id)
    except Exception:
        logger.exception("Sync audit failed for client %s", client_id)
        return None


async def run_daily_sync_audit() -> None:
    """Audit every active client in turn."""
    logger.info("Starting daily sync audit run")

    async with async_session() as db:
        result = await db.execute(
            select(Client.id).where(Client.is_active == True)  # noqa: E712
        )
        client_ids = [row[0] for row in result.all()]

    logger.info("Found %d active clients", len(client_ids))

    for client_id in client_ids:
        report = await _audit_client(client_id)
        if report and not report["is_fully_synced"]:
            high = sum(1 for i in report["sync_issues"] if i["severity"] == "High")
            logger.warning(
                "Client %s: %d sync issues (high=%d)",
                client_id, len(report["sync_issues"]), high,
            )

    logger.info("Daily sync audit complete for %d clients", len(client_ids))


def seconds_until(hour: int, now: datetime) -> float:
    """Seconds from `now` to the next hour:00 UTC."""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def _scheduler_loop() -> None:
    while True:
        wait_seconds = seconds_until(settings.sync_audit_hour, datetime.now(timezone.utc))
        logger.info("Next sync audit in %.0f seconds", wait_seconds)
        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_sync_audit()
        except Exception:
            logger.exception("Unhandled error in daily sync audit")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: wire app-wide services, run the scheduler."""
    app.state.deduplicator = build_deduplicator()
    app.state.lookup_cache = build_lookup_cache()

    task = None
    if settings.enable_scheduler:
        task = asyncio.create_task(_scheduler_loop())
        logger.info("Sync audit scheduler started")
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Sync audit scheduler stopped")
        await close_redis()
