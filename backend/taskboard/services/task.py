"""Task lifecycle: create, read, update, soft delete and filter tasks."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from taskboard.models.enums import NotificationType, TaskPriority, TaskStatus
from taskboard.models.project import Project, ProjectMember, Task
from taskboard.models.user import User
from taskboard.services import access_control
from taskboard.services.notification import NotificationService, Notifier
from taskboard.services.task_filter import TaskFilter, filter_tasks
from taskboard.utils.clock import Clock, as_utc, system_clock

logger = structlog.get_logger()

# Fields a partial update may touch, in the order they are applied
UPDATABLE_FIELDS = (
    "title",
    "description",
    "priority",
    "status",
    "assigned_to_id",
    "estimated_hours",
    "actual_hours",
    "due_date",
    "position",
)


@dataclass
class TaskCreateData:
    """Input for creating a task."""

    project_id: UUID
    title: str
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to_id: UUID | None = None
    estimated_hours: Decimal | None = None
    due_date: datetime | None = None
    position: int | None = None

    def __post_init__(self) -> None:
        self.due_date = as_utc(self.due_date)


def apply_status_transition(task: Task, status: TaskStatus, now: datetime) -> None:
    """Keep completed_at in step with the DONE status.

    Set on the way into DONE, cleared on the way out; evaluated once per
    write after the effective status is known.
    """
    task.status = status
    if status == TaskStatus.DONE and task.completed_at is None:
        task.completed_at = now
    if status != TaskStatus.DONE and task.completed_at is not None:
        task.completed_at = None


class TaskService:
    """Service enforcing task permissions and lifecycle rules."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ):
        self.db = db
        self.notifier = notifier if notifier is not None else NotificationService(db)
        self.clock = clock if clock is not None else system_clock

    # =========================================================================
    # Lookups
    # =========================================================================

    async def _get_active_project(self, project_id: UUID) -> Project:
        result = await self.db.execute(
            select(Project).where(Project.id == project_id, Project.active_criteria())
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def _get_active_task(self, task_id: UUID) -> Task:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.active_criteria())
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _project_name(self, project_id: UUID) -> str:
        result = await self.db.execute(select(Project.name).where(Project.id == project_id))
        return result.scalar_one_or_none() or "Unknown Project"

    # =========================================================================
    # Assignment & notifications
    # =========================================================================

    async def validate_assignment(
        self,
        project_id: UUID,
        assignee_id: UUID,
        acting_user: User,
    ) -> None:
        """Check that a task in the project may be assigned to the user.

        System admins may assign to anyone who exists; everyone else only to
        members of the project. A non-member target is bad input, not an
        authorization failure.
        """
        if access_control.is_system_admin(acting_user):
            result = await self.db.execute(select(User.id).where(User.id == assignee_id))
            if result.scalar_one_or_none() is None:
                raise NotFoundError("User not found")
            return

        if not await access_control.is_member(self.db, assignee_id, project_id):
            raise InvalidInputError("Cannot assign task to user who is not a project member")

    async def _notify_safely(
        self,
        user_id: UUID,
        task: Task,
        kind: NotificationType,
        title: str,
        message: str,
    ) -> None:
        """Emit a notification; failures are logged and never propagate."""
        try:
            await self.notifier.notify(user_id, task.id, kind, title, message)
        except Exception as e:
            logger.warning(
                "notification_failed",
                task_id=str(task.id),
                user_id=str(user_id),
                notification_type=kind.value,
                error=str(e),
            )

    # =========================================================================
    # Commands
    # =========================================================================

    async def create_task(self, user: User, data: TaskCreateData) -> Task:
        """Create a task in an active project the user can manage."""
        project = await self._get_active_project(data.project_id)

        if not await access_control.has_access(self.db, user, project.id):
            raise ForbiddenError("You don't have access to this project")
        if not await access_control.can_manage_tasks(self.db, user, project.id):
            raise ForbiddenError("You don't have permission to create tasks in this project")

        if data.assigned_to_id is not None:
            await self.validate_assignment(project.id, data.assigned_to_id, user)

        task = Task(
            title=data.title,
            description=data.description,
            project_id=project.id,
            assigned_to_id=data.assigned_to_id,
            created_by_id=user.id,
            priority=data.priority or TaskPriority.MEDIUM,
            estimated_hours=data.estimated_hours,
            due_date=data.due_date,
            position=data.position if data.position is not None else 0,
            is_active=True,
        )
        apply_status_transition(task, data.status or TaskStatus.TODO, self.clock.now())

        self.db.add(task)
        await self.db.flush()

        logger.info(
            "task_created",
            task_id=str(task.id),
            project_id=str(project.id),
            created_by=str(user.id),
        )

        if task.assigned_to_id is not None and task.assigned_to_id != user.id:
            await self._notify_safely(
                task.assigned_to_id,
                task,
                NotificationType.TASK_ASSIGNED,
                "New Task Assigned",
                f"You have been assigned to task '{task.title}' in project '{project.name}'",
            )

        return task

    async def update_task(self, user: User, task_id: UUID, changes: dict[str, Any]) -> Task:
        """Apply a partial update.

        ``changes`` holds only the fields the caller supplied; ``None`` values
        and blank titles leave the stored value untouched. Everything is
        validated before the first field is written.
        """
        task = await self._get_active_task(task_id)

        if not await access_control.can_manage_tasks(self.db, user, task.project_id):
            raise ForbiddenError("You don't have permission to edit tasks in this project")

        updates = {
            name: changes[name]
            for name in UPDATABLE_FIELDS
            if changes.get(name) is not None
        }
        if "title" in updates and not str(updates["title"]).strip():
            del updates["title"]
        if "due_date" in updates:
            updates["due_date"] = as_utc(updates["due_date"])

        previous_assignee = task.assigned_to_id
        new_assignee = updates.get("assigned_to_id")
        if new_assignee is not None:
            await self.validate_assignment(task.project_id, new_assignee, user)

        previous_status = task.status
        new_status = updates.pop("status", task.status)
        for name, value in updates.items():
            setattr(task, name, value)
        apply_status_transition(task, new_status, self.clock.now())

        await self.db.flush()

        logger.info(
            "task_updated",
            task_id=str(task.id),
            fields=sorted(updates) + (["status"] if new_status != previous_status else []),
        )

        if (
            new_assignee is not None
            and new_assignee != previous_assignee
            and new_assignee != user.id
        ):
            project_name = await self._project_name(task.project_id)
            await self._notify_safely(
                new_assignee,
                task,
                NotificationType.TASK_REASSIGNED,
                "Task Reassigned to You",
                f"You have been assigned to task '{task.title}' in project '{project_name}'",
            )

        return task

    async def delete_task(self, user: User, task_id: UUID) -> None:
        """Soft delete: system admin, project owner or the task's creator."""
        task = await self._get_active_task(task_id)

        if not await access_control.can_delete_task(self.db, user, task):
            raise ForbiddenError(
                "Only system admin, project owner, or task creator can delete tasks"
            )

        task.soft_delete()
        await self.db.flush()

        logger.info("task_deleted", task_id=str(task_id), deleted_by=str(user.id))

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_task(self, user: User, task_id: UUID) -> Task:
        task = await self._get_active_task(task_id)
        if not await access_control.has_access(self.db, user, task.project_id):
            raise ForbiddenError("You don't have access to this task")
        return task

    async def list_project_tasks(self, user: User, project_id: UUID) -> list[Task]:
        """Active tasks of one project, in manual order."""
        project = await self._get_active_project(project_id)
        if not await access_control.has_access(self.db, user, project.id):
            raise ForbiddenError("You don't have access to this project")

        result = await self.db.execute(
            select(Task)
            .where(Task.project_id == project.id, Task.active_criteria())
            .order_by(Task.position.asc(), Task.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_user_tasks(self, user: User) -> list[Task]:
        """Active tasks in every active project visible to the user."""
        query = (
            select(Task)
            .join(Project, Project.id == Task.project_id)
            .where(Task.active_criteria(), Project.active_criteria())
        )
        if not access_control.is_system_admin(user):
            query = query.join(
                ProjectMember,
                (ProjectMember.project_id == Task.project_id)
                & (ProjectMember.user_id == user.id),
            )
        query = query.order_by(Task.due_date.asc().nulls_last(), Task.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().unique().all())

    async def filter_tasks(self, user: User, criteria: TaskFilter) -> list[Task]:
        """Apply the filter pipeline to a project's tasks or the user's tasks."""
        if criteria.project_id is not None:
            tasks = await self.list_project_tasks(user, criteria.project_id)
        else:
            tasks = await self.list_user_tasks(user)
        return filter_tasks(tasks, criteria, self.clock.now())
