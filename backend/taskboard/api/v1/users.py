"""User management endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.api.v1.auth import CurrentUser
from taskboard.api.v1.projects import TaskStatisticsResponse
from taskboard.db.session import get_db_session
from taskboard.models.enums import UserRole
from taskboard.services.statistics import StatisticsService
from taskboard.services.user import UserService
from taskboard.utils.clock import Clock, get_clock

router = APIRouter()


class UserListItem(BaseModel):
    """User list item for member selection."""

    id: UUID
    email: str
    display_name: str

    class Config:
        from_attributes = True


class UserProfileResponse(BaseModel):
    """User profile response."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    display_name: str
    profile_image: str | None
    role: UserRole
    created_at: datetime

    class Config:
        from_attributes = True


class UserProfileUpdate(BaseModel):
    """User profile update request."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    profile_image: str | None = Field(None, max_length=500)


class UserStatisticsResponse(BaseModel):
    total_projects: int
    owned_projects: int
    member_projects: int
    tasks: TaskStatisticsResponse

    class Config:
        from_attributes = True


@router.get("", response_model=list[UserListItem])
async def list_users(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[UserListItem]:
    """List active users for member selection."""
    users = await UserService(db).list_active_users()
    return [UserListItem.model_validate(u) for u in users]


@router.get("/search", response_model=list[UserListItem])
async def search_users(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    q: str = Query("", max_length=100),
    limit: int = Query(20, ge=1, le=100),
) -> list[UserListItem]:
    users = await UserService(db).search_users(q, limit=limit)
    return [UserListItem.model_validate(u) for u in users]


@router.get("/me", response_model=UserProfileResponse)
async def get_my_profile(current_user: CurrentUser) -> UserProfileResponse:
    return UserProfileResponse.model_validate(current_user)


@router.patch("/me", response_model=UserProfileResponse)
async def update_my_profile(
    profile_data: UserProfileUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> UserProfileResponse:
    user = await UserService(db).update_profile(
        current_user,
        profile_data.model_dump(exclude_unset=True),
    )
    return UserProfileResponse.model_validate(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_my_account(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """Deactivate the current account. The row is kept."""
    await UserService(db).deactivate_account(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/statistics", response_model=UserStatisticsResponse)
async def get_my_statistics(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> UserStatisticsResponse:
    """Task statistics across the user's projects; system-wide for admins."""
    stats = await StatisticsService(db, clock=clock).user_statistics(current_user)
    return UserStatisticsResponse.model_validate(stats)


@router.get("/{user_id}", response_model=UserProfileResponse)
async def get_user(
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> UserProfileResponse:
    user = await UserService(db).get_profile(user_id)
    return UserProfileResponse.model_validate(user)
