"""
Maintenance Tasks

Nightly housekeeping on the sync engine:
    - read notifications older than ``NOTIFICATION_RETENTION_DAYS`` are deleted
    - activity log rows older than ``ACTIVITY_LOG_RETENTION_DAYS`` are deleted
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import and_, delete
from sqlalchemy.orm import Session

from backend.celery_app import celery_app
from backend.database import get_sync_session
from backend.models import ActivityLog, Notification

logger = logging.getLogger(__name__)

NOTIFICATION_RETENTION_DAYS = 90
ACTIVITY_LOG_RETENTION_DAYS = 365


def purge_records(session: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """Delete expired rows in ``session``; the caller commits."""
    now = now or datetime.now(timezone.utc)
    notification_cutoff = now - timedelta(days=NOTIFICATION_RETENTION_DAYS)
    log_cutoff = now - timedelta(days=ACTIVITY_LOG_RETENTION_DAYS)

    notifications = session.execute(
        delete(Notification).where(
            and_(Notification.is_read.is_(True), Notification.created_at < notification_cutoff)
        )
    )
    logs = session.execute(delete(ActivityLog).where(ActivityLog.created_at < log_cutoff))
    return {
        "notifications_deleted": notifications.rowcount or 0,
        "activity_logs_deleted": logs.rowcount or 0,
    }


@celery_app.task(
    name="backend.tasks.maintenance.purge_old_records",
    soft_time_limit=600,
    time_limit=900,
)
def purge_old_records() -> dict[str, Any]:
    with get_sync_session() as session:
        stats = purge_records(session)
    logger.info(
        f"Purged {stats['notifications_deleted']} notifications and "
        f"{stats['activity_logs_deleted']} activity log entries"
    )
    return stats
