"""In-app notification service for managing user notifications."""

from typing import Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError
from backend.core.permissions import has_module
from backend.models import Notification, User, UserRole

logger = structlog.get_logger(__name__)


class NotificationService:
    """
    Creates and reads in-app notifications.

    New notifications are added to the caller's session and become visible
    when the surrounding transaction commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(self, user_id: UUID, title: str, project_id: Optional[str] = None) -> Notification:
        notification = Notification(user_id=user_id, title=title, project_id=project_id, is_read=False)
        self.db.add(notification)
        await self.db.flush()
        logger.debug("notification_created", user_id=str(user_id), title=title[:60])
        return notification

    async def notify_many(
        self,
        user_ids: Iterable[UUID | str],
        title: str,
        project_id: Optional[str] = None,
    ) -> int:
        """Notify each distinct user once; returns the number of rows added."""
        seen: set[UUID] = set()
        for user_id in user_ids:
            uid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
            if uid in seen:
                continue
            seen.add(uid)
            self.db.add(Notification(user_id=uid, title=title, project_id=project_id, is_read=False))
        if seen:
            await self.db.flush()
        return len(seen)

    async def notify_role(self, role: UserRole, title: str, project_id: Optional[str] = None) -> int:
        result = await self.db.execute(select(User.id).where(User.role == role.value))
        return await self.notify_many(result.scalars().all(), title, project_id)

    async def users_with_module(self, module_id: str) -> list[User]:
        """Users whose effective modules include ``module_id``."""
        result = await self.db.execute(select(User))
        return [user for user in result.scalars().all() if has_module(user, module_id)]

    async def notify_module_holders(self, module_id: str, title: str, project_id: Optional[str] = None) -> int:
        holders = await self.users_with_module(module_id)
        count = await self.notify_many([user.id for user in holders], title, project_id)
        logger.info("module_holders_notified", module=module_id, count=count)
        return count

    async def list_for_user(self, user_id: UUID, unread_only: bool = False, limit: int = 100) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(and_(Notification.user_id == user_id, Notification.is_read.is_(False)))
        )
        return result.scalar() or 0

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        """
        Mark one notification as read.

        Raises:
            NotFoundError: If the notification is missing or belongs to another user.
        """
        result = await self.db.execute(
            select(Notification).where(
                and_(Notification.id == notification_id, Notification.user_id == user_id)
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification", message="Notification not found.")

        notification.is_read = True
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(and_(Notification.user_id == user_id, Notification.is_read.is_(False)))
            .values(is_read=True)
        )
        await self.db.flush()
        logger.info("notifications_marked_read", user_id=str(user_id), count=result.rowcount)
        return result.rowcount or 0
