"""In-app notification endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.api.v1.auth import CurrentUser
from taskboard.db.session import get_db_session
from taskboard.models.enums import NotificationType
from taskboard.services.notification import NotificationService

router = APIRouter()


class NotificationResponse(BaseModel):
    id: UUID
    notification_type: NotificationType
    title: str
    message: str | None
    task_id: UUID | None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    unread_only: bool = Query(False),
) -> NotificationListResponse:
    service = NotificationService(db)
    notifications = await service.list_notifications(current_user, unread_only=unread_only)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=await service.unread_count(current_user),
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    notification = await NotificationService(db).mark_as_read(current_user, notification_id)
    return NotificationResponse.model_validate(notification)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MarkAllReadResponse:
    updated = await NotificationService(db).mark_all_as_read(current_user)
    return MarkAllReadResponse(updated=updated)
