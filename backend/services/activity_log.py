"""
Activity log service.
Persists business events (status changes, approvals, job runs) so
administrators can review what happened and when.
"""
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models import ActivityLevel, ActivityLog

logger = structlog.get_logger(__name__)


class ActivityLogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_activity(
        self,
        level: ActivityLevel,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> ActivityLog:
        """Record an event in the caller's transaction and mirror it to the structured log."""
        entry = ActivityLog(level=level.value, message=message, context=dict(context or {}))
        self.db.add(entry)
        await self.db.flush()

        getattr(logger, level.value.lower())("activity", message=message, context=context or {})
        return entry

    async def recent(self, limit: int = 100, level: Optional[ActivityLevel] = None) -> list[ActivityLog]:
        query = select(ActivityLog)
        if level is not None:
            query = query.where(ActivityLog.level == level.value)
        query = query.order_by(ActivityLog.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
