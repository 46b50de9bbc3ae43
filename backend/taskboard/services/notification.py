"""Notification service for creating in-app notifications."""

from typing import Protocol
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import NotFoundError
from taskboard.models.enums import NotificationType
from taskboard.models.notification import Notification
from taskboard.models.user import User

logger = structlog.get_logger()


class Notifier(Protocol):
    """Fire-and-forget side effect used by the task lifecycle."""

    async def notify(
        self,
        user_id: UUID,
        task_id: UUID,
        kind: NotificationType,
        title: str,
        message: str,
    ) -> None: ...


class NotificationService:
    """Service for creating and reading user notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        user_id: UUID,
        task_id: UUID,
        kind: NotificationType,
        title: str,
        message: str,
    ) -> None:
        """
        Create a notification for a user.

        The row is written inside a SAVEPOINT so that a failure here can be
        discarded without rolling back the write that triggered it.

        Args:
            user_id: The recipient user's ID
            task_id: Task the notification points to
            kind: Notification type
            title: Notification title
            message: Notification body
        """
        async with self.db.begin_nested():
            notification = Notification(
                user_id=user_id,
                task_id=task_id,
                notification_type=kind,
                title=title,
                message=message,
                is_read=False,
            )
            self.db.add(notification)

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(user_id),
            notification_type=kind.value,
        )

    async def list_notifications(
        self,
        user: User,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Notifications addressed to the user, newest first."""
        query = select(Notification).where(Notification.user_id == user.id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user: User) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user.id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_as_read(self, user: User, notification_id: UUID) -> Notification:
        """Mark one notification read. Someone else's is reported as missing."""
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalar_one_or_none()
        if notification is None or notification.user_id != user.id:
            raise NotFoundError("Notification not found")

        notification.is_read = True
        await self.db.flush()
        return notification

    async def mark_all_as_read(self, user: User) -> int:
        """Mark every unread notification read; returns how many changed."""
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.user_id == user.id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
        )
        logger.info(
            "notifications_marked_read",
            user_id=str(user.id),
            count=result.rowcount,
        )
        return result.rowcount
