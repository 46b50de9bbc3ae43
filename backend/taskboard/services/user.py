"""User account operations."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import NotFoundError
from taskboard.models.user import User

logger = structlog.get_logger()

PROFILE_FIELDS = ("first_name", "last_name", "profile_image")


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: UUID) -> User:
        result = await self.db.execute(
            select(User).where(User.id == user_id, User.active_criteria())
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User:
        """Update name and avatar; absent or None fields are left alone."""
        for name in PROFILE_FIELDS:
            value = changes.get(name)
            if value is not None:
                setattr(user, name, value)

        await self.db.flush()
        logger.info("user_profile_updated", user_id=str(user.id))
        return user

    async def deactivate_account(self, user: User) -> None:
        user.soft_delete()
        await self.db.flush()
        logger.info("user_deactivated", user_id=str(user.id))

    async def list_active_users(self) -> list[User]:
        result = await self.db.execute(
            select(User)
            .where(User.active_criteria())
            .order_by(User.first_name, User.last_name)
        )
        return list(result.scalars().all())

    async def search_users(self, term: str, limit: int = 20) -> list[User]:
        """Case-insensitive match on email, first or last name."""
        if not term or not term.strip():
            return []

        pattern = f"%{term.strip().lower()}%"
        result = await self.db.execute(
            select(User)
            .where(
                User.active_criteria(),
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                ),
            )
            .order_by(User.first_name, User.last_name)
            .limit(limit)
        )
        return list(result.scalars().all())
