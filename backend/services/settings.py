"""
System settings service.
Reads and updates the single portal-wide settings row.
"""
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models import ClaimType, SystemSettings
from backend.schemas.settings import SystemSettingsUpdate

logger = structlog.get_logger(__name__)

SETTINGS_ROW_ID = 1


class SystemSettingsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self) -> SystemSettings:
        """Return the settings row, creating it with defaults on first use."""
        result = await self.db.execute(select(SystemSettings).where(SystemSettings.id == SETTINGS_ROW_ID))
        row = result.scalar_one_or_none()
        if row is None:
            row = SystemSettings(
                id=SETTINGS_ROW_ID,
                imr_evaluation_days=3,
                incentive_approvers=[],
                incentive_approval_workflows={},
            )
            self.db.add(row)
            await self.db.flush()
            logger.info("system_settings_initialized")
        return row

    async def update(self, data: SystemSettingsUpdate) -> SystemSettings:
        row = await self.get()
        changes = data.model_dump(exclude_unset=True, mode="json")

        if "imr_evaluation_days" in changes:
            row.imr_evaluation_days = changes["imr_evaluation_days"]
        if "dnd_email" in changes:
            row.dnd_email = changes["dnd_email"]
        if "incentive_approvers" in changes:
            row.incentive_approvers = list(changes["incentive_approvers"] or [])
        if "incentive_approval_workflows" in changes:
            row.incentive_approval_workflows = dict(changes["incentive_approval_workflows"] or {})

        await self.db.flush()
        logger.info("system_settings_updated", fields=sorted(changes))
        return row


def approver_email_for_stage(settings: SystemSettings, stage: int) -> Optional[str]:
    for approver in settings.incentive_approvers or []:
        if approver.get("stage") == stage:
            return approver.get("email")
    return None


def workflow_for(settings: SystemSettings, claim_type: ClaimType | str) -> list[int]:
    """Configured stage numbers for a claim type, ascending; empty when unset."""
    key = claim_type.value if isinstance(claim_type, ClaimType) else claim_type
    return sorted((settings.incentive_approval_workflows or {}).get(key) or [])
