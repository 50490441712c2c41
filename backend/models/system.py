"""
Notifications, activity log, system-wide settings and id counters.
"""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, TIMESTAMP, Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, utcnow


class Notification(Base):
    """In-app notification shown in a user's bell menu."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Id or portal path the notification links to",
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)


class ActivityLog(Base):
    """Business event log; replaces console-only logging of actions."""

    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    level: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(level='{self.level}', message='{self.message[:40]}')>"


class SystemSettings(Base):
    """
    Portal-wide settings, stored as a single row (id = 1).

    ``incentive_approvers`` is a list of ``{stage, email}``;
    ``incentive_approval_workflows`` maps a claim type to the ordered stage
    numbers it passes through.
    """

    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    imr_evaluation_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=3,
        doc="Days evaluators get after an IMR meeting before reminders start",
    )
    dnd_email: Mapped[Optional[str]] = mapped_column(
        String(320),
        nullable=True,
        doc="Address that never receives portal email",
    )
    incentive_approvers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    incentive_approval_workflows: Mapped[dict[str, list[int]]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class Counter(Base):
    """Monotonic counters behind the human readable ids (RDC/EMR/CALL/00001 etc.)."""

    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
