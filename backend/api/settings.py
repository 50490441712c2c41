"""
System settings and activity log endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query

from backend.api.deps import AdminUser, AsyncSessionDep, SuperAdminUser
from backend.models import ActivityLevel
from backend.schemas.common import DataResponse, ListResponse, list_response
from backend.schemas.settings import ActivityLogResponse, SystemSettingsResponse, SystemSettingsUpdate
from backend.services.activity_log import ActivityLogService
from backend.services.settings import SystemSettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["System Settings"])


@router.get("", response_model=DataResponse[SystemSettingsResponse], summary="Get system settings")
async def get_settings(db: AsyncSessionDep, _admin: AdminUser) -> dict:
    row = await SystemSettingsService(db).get()
    return {"success": True, "data": SystemSettingsResponse.model_validate(row)}


@router.put("", response_model=DataResponse[SystemSettingsResponse], summary="Update system settings")
async def update_settings(data: SystemSettingsUpdate, db: AsyncSessionDep, super_admin: SuperAdminUser) -> dict:
    row = await SystemSettingsService(db).update(data)
    logger.info(f"System settings updated by {super_admin.id}")
    return {"success": True, "data": SystemSettingsResponse.model_validate(row)}


@router.get(
    "/activity-logs",
    response_model=ListResponse[ActivityLogResponse],
    summary="Recent activity log entries",
)
async def list_activity_logs(
    db: AsyncSessionDep,
    _super_admin: SuperAdminUser,
    level: Optional[ActivityLevel] = Query(None, description="Only entries at this level"),
    limit: int = Query(100, ge=1, le=500),
) -> dict:
    entries = await ActivityLogService(db).recent(limit=limit, level=level)
    return list_response([ActivityLogResponse.model_validate(e) for e in entries])
