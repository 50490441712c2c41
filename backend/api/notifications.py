"""Notifications API endpoints for the current user's bell menu."""
import logging
from uuid import UUID

from fastapi import APIRouter, Query

from backend.api.deps import AsyncSessionDep, CurrentUser
from backend.schemas.notifications import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from backend.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"],
)


@router.get("", response_model=NotificationListResponse, summary="List notifications")
async def list_notifications(
    db: AsyncSessionDep,
    current_user: CurrentUser,
    unread_only: bool = Query(False, description="Only return unread notifications"),
    limit: int = Query(100, ge=1, le=500),
) -> NotificationListResponse:
    service = NotificationService(db)
    notifications = await service.list_for_user(current_user.id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=len(notifications),
        unread_count=await service.unread_count(current_user.id),
    )


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Count unread notifications")
async def unread_count(db: AsyncSessionDep, current_user: CurrentUser) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await NotificationService(db).unread_count(current_user.id))


@router.post("/{notification_id}/read", response_model=MarkReadResponse, summary="Mark one notification read")
async def mark_read(notification_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> MarkReadResponse:
    await NotificationService(db).mark_read(current_user.id, notification_id)
    return MarkReadResponse(marked=1)


@router.post("/read-all", response_model=MarkReadResponse, summary="Mark all notifications read")
async def mark_all_read(db: AsyncSessionDep, current_user: CurrentUser) -> MarkReadResponse:
    marked = await NotificationService(db).mark_all_read(current_user.id)
    return MarkReadResponse(marked=marked)
