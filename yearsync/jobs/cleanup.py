"""Retention cleanup job."""

import logging
from datetime import datetime, timedelta, timezone

from yearsync.config import get_settings
from yearsync.database import get_database, log_sync_event

logger = logging.getLogger(__name__)


async def run_retention_cleanup() -> dict:
    """
    Delete sync audit entries older than the retention period.

    The entry-count cap in ``log_sync_event`` bounds the table size; this job
    bounds its age. Nothing here touches the cloud document.
    """
    settings = get_settings()
    db = await get_database()

    # Same format as CURRENT_TIMESTAMP, which is UTC
    cutoff = (
        datetime.now(timezone.utc) - timedelta(days=settings.sync_log_retention_days)
    ).strftime("%Y-%m-%d %H:%M:%S")

    cursor = await db.execute(
        "DELETE FROM sync_log WHERE created_at < ? RETURNING id",
        (cutoff,)
    )
    deleted = await cursor.fetchall()
    await db.commit()

    summary = {"old_sync_logs": len(deleted)}
    logger.info(f"Retention cleanup completed: {summary}")

    await log_sync_event("retention_cleanup", "success", str(summary))

    return summary
