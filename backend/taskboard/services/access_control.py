"""Project access control.

Single source of truth for who may read or modify a project and its tasks.
Every service asks these functions instead of inspecting owner ids or member
roles itself.

Capability ladder:
- system ADMIN: full read/write everywhere, treated as owner for gating
- project owner: everything on the project
- OWNER / ADMIN member: edit the project, create and edit its tasks
- MEMBER: read-only

Task deletion is deliberately a separate rule (see ``can_delete_task``).
"""

from uuid import UUID

import structlog
from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.models.enums import ProjectRole
from taskboard.models.project import Project, ProjectMember, Task
from taskboard.models.user import User

logger = structlog.get_logger()

# Member roles allowed to edit a project and manage its tasks
MANAGER_ROLES = frozenset({ProjectRole.OWNER, ProjectRole.ADMIN})


def is_system_admin(user: User) -> bool:
    """The one place the global admin bypass is decided."""
    return user.is_admin


async def _get_owner_id(db: AsyncSession, project_id: UUID) -> UUID | None:
    result = await db.execute(select(Project.owner_id).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def get_member_role(
    db: AsyncSession,
    user_id: UUID,
    project_id: UUID,
) -> ProjectRole | None:
    """Role of a user's membership row, or None if not a member."""
    result = await db.execute(
        select(ProjectMember.role).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def is_member(db: AsyncSession, user_id: UUID, project_id: UUID) -> bool:
    """Whether a membership row exists for the pair."""
    result = await db.execute(
        select(
            exists().where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
    )
    return bool(result.scalar())


async def has_access(db: AsyncSession, user: User, project_id: UUID) -> bool:
    """Read access: system admin, project owner, or any member.

    A project id with no row yields False; existence checks are the caller's.
    """
    if is_system_admin(user):
        return True

    owner_id = await _get_owner_id(db, project_id)
    if owner_id is None:
        return False
    if owner_id == user.id:
        return True
    return await is_member(db, user.id, project_id)


async def is_owner(db: AsyncSession, user: User, project_id: UUID) -> bool:
    """Owner-only gate. System admins satisfy it too."""
    if is_system_admin(user):
        return True
    owner_id = await _get_owner_id(db, project_id)
    return owner_id is not None and owner_id == user.id


async def can_manage_project(db: AsyncSession, user: User, project_id: UUID) -> bool:
    """Edit capability: owner, or an OWNER/ADMIN member."""
    if await is_owner(db, user, project_id):
        return True
    role = await get_member_role(db, user.id, project_id)
    return role in MANAGER_ROLES


async def can_manage_tasks(db: AsyncSession, user: User, project_id: UUID) -> bool:
    """Create/edit tasks. Same rule as project editing; MEMBER is read-only."""
    return await can_manage_project(db, user, project_id)


async def can_delete_task(db: AsyncSession, user: User, task: Task) -> bool:
    """Soft-delete a task: system admin, project owner, or the task's creator.

    A project-role ADMIN who neither owns the project nor created the task
    is refused, unlike for updates.
    """
    if task.created_by_id == user.id:
        return True
    return await is_owner(db, user, task.project_id)
