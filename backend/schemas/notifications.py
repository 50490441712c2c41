"""Notification schemas for API request/response validation."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    """Response schema for a notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique identifier for the notification")
    user_id: UUID = Field(..., description="User who receives this notification")
    project_id: Optional[str] = Field(None, description="Id or portal path the notification links to")
    title: str = Field(..., description="Notification text")
    is_read: bool = Field(..., description="Whether the notification has been read")
    created_at: datetime = Field(..., description="When the notification was created")


class NotificationListResponse(BaseModel):
    """Response schema for listing notifications."""

    success: bool = True
    notifications: List[NotificationResponse] = Field(..., description="List of notifications")
    total: int = Field(..., description="Number of notifications returned")
    unread_count: int = Field(..., description="Number of unread notifications")


class UnreadCountResponse(BaseModel):
    success: bool = True
    unread_count: int


class MarkReadResponse(BaseModel):
    success: bool = True
    marked: int = Field(..., description="Number of notifications marked as read")
