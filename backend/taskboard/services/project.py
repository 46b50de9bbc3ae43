"""Projects and their membership."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import get_settings
from taskboard.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from taskboard.models.enums import ProjectRole
from taskboard.models.project import Project, ProjectMember
from taskboard.models.user import User
from taskboard.services import access_control

logger = structlog.get_logger()


@dataclass
class ProjectCreateData:
    name: str
    description: str | None = None
    color: str | None = None


@dataclass
class MemberAddData:
    """Target of an add-member call: exactly one of user_id or email."""

    user_id: UUID | None = None
    email: str | None = None
    role: ProjectRole = ProjectRole.MEMBER


class ProjectService:
    """Service enforcing project ownership and membership rules.

    Every project keeps exactly one OWNER membership, held by ``owner_id``;
    no path here can grant, change or remove it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_active_project(self, project_id: UUID) -> Project:
        result = await self.db.execute(
            select(Project).where(Project.id == project_id, Project.active_criteria())
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def _get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember:
        result = await self.db.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise NotFoundError("Member not found")
        return member

    async def _require_owner(self, user: User, project: Project) -> None:
        if not await access_control.is_owner(self.db, user, project.id):
            raise ForbiddenError("Only the project owner can manage members")

    # =========================================================================
    # Projects
    # =========================================================================

    async def create_project(self, user: User, data: ProjectCreateData) -> Project:
        """Create a project with its creator enrolled as OWNER.

        Both rows go out in a single flush, inside the caller's transaction.
        """
        project = Project(
            name=data.name,
            description=data.description,
            color=data.color or get_settings().default_project_color,
            owner_id=user.id,
            is_active=True,
        )
        project.members.append(
            ProjectMember(user_id=user.id, user=user, role=ProjectRole.OWNER)
        )

        self.db.add(project)
        await self.db.flush()

        logger.info("project_created", project_id=str(project.id), owner_id=str(user.id))
        return project

    async def list_projects(self, user: User) -> list[Project]:
        """Active projects the user can see, newest first."""
        query = select(Project).where(Project.active_criteria())
        if not access_control.is_system_admin(user):
            member_of = select(ProjectMember.project_id).where(
                ProjectMember.user_id == user.id
            )
            query = query.where(
                or_(Project.owner_id == user.id, Project.id.in_(member_of))
            )
        query = query.order_by(Project.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_project(self, user: User, project_id: UUID) -> Project:
        project = await self._get_active_project(project_id)
        if not await access_control.has_access(self.db, user, project.id):
            raise ForbiddenError("You don't have access to this project")
        return project

    async def update_project(
        self,
        user: User,
        project_id: UUID,
        changes: dict[str, Any],
    ) -> Project:
        """Partial update of name, description and color."""
        project = await self._get_active_project(project_id)
        if not await access_control.can_manage_project(self.db, user, project.id):
            raise ForbiddenError("You don't have permission to edit this project")

        name = changes.get("name")
        if name is not None and name.strip():
            project.name = name
        if changes.get("description") is not None:
            project.description = changes["description"]
        if changes.get("color") is not None:
            project.color = changes["color"]

        await self.db.flush()
        logger.info("project_updated", project_id=str(project.id), user_id=str(user.id))
        return project

    async def delete_project(self, user: User, project_id: UUID) -> None:
        project = await self._get_active_project(project_id)
        if not await access_control.is_owner(self.db, user, project.id):
            raise ForbiddenError("Only the project owner can delete this project")

        project.soft_delete()
        await self.db.flush()
        logger.info("project_deleted", project_id=str(project_id), deleted_by=str(user.id))

    # =========================================================================
    # Members
    # =========================================================================

    async def list_members(self, user: User, project_id: UUID) -> list[ProjectMember]:
        project = await self.get_project(user, project_id)
        return list(project.members)

    async def add_member(
        self,
        user: User,
        project_id: UUID,
        data: MemberAddData,
    ) -> ProjectMember:
        """Enroll a user, found by id or by email, as ADMIN or MEMBER."""
        project = await self._get_active_project(project_id)
        await self._require_owner(user, project)

        if (data.user_id is None) == (data.email is None):
            raise InvalidInputError("Provide exactly one of user_id or email")
        if data.role == ProjectRole.OWNER:
            raise InvalidInputError("A project can only have one owner")

        if data.user_id is not None:
            query = select(User).where(User.id == data.user_id)
        else:
            query = select(User).where(func.lower(User.email) == data.email.strip().lower())
        result = await self.db.execute(query.where(User.active_criteria()))
        target = result.scalar_one_or_none()
        if target is None:
            raise NotFoundError("User not found")

        if await access_control.is_member(self.db, target.id, project.id):
            raise ConflictError("User is already a member of this project")

        member = ProjectMember(user_id=target.id, user=target, role=data.role)
        project.members.append(member)
        await self.db.flush()

        logger.info(
            "project_member_added",
            project_id=str(project.id),
            user_id=str(target.id),
            role=data.role.value,
        )
        return member

    async def update_member_role(
        self,
        user: User,
        project_id: UUID,
        member_user_id: UUID,
        role: ProjectRole,
    ) -> ProjectMember:
        project = await self._get_active_project(project_id)
        await self._require_owner(user, project)

        member = await self._get_member(project.id, member_user_id)

        if member_user_id == user.id:
            raise ForbiddenError("You cannot change your own role")
        if member_user_id == project.owner_id:
            raise ForbiddenError("The project owner's role cannot be changed")
        if role == ProjectRole.OWNER:
            raise InvalidInputError("A project can only have one owner")

        member.role = role
        await self.db.flush()

        logger.info(
            "project_member_role_updated",
            project_id=str(project.id),
            user_id=str(member_user_id),
            role=role.value,
        )
        return member

    async def remove_member(
        self,
        user: User,
        project_id: UUID,
        member_user_id: UUID,
    ) -> None:
        project = await self._get_active_project(project_id)
        await self._require_owner(user, project)

        if member_user_id == user.id:
            raise ForbiddenError("You cannot remove yourself from the project")
        if member_user_id == project.owner_id:
            raise ForbiddenError("Cannot remove project owner")

        member = await self._get_member(project.id, member_user_id)
        # delete-orphan on Project.members removes the row
        project.members.remove(member)
        await self.db.flush()

        logger.info(
            "project_member_removed",
            project_id=str(project.id),
            user_id=str(member_user_id),
            removed_by=str(user.id),
        )
