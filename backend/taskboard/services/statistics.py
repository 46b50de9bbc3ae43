"""Task statistics for projects and users."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import ForbiddenError, NotFoundError
from taskboard.models.enums import TERMINAL_STATUSES, TaskPriority, TaskStatus
from taskboard.models.project import Project, ProjectMember, Task
from taskboard.models.user import User
from taskboard.services import access_control
from taskboard.services.task_filter import is_overdue
from taskboard.utils.clock import Clock, system_clock

logger = structlog.get_logger()

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def percentage(numerator: int, denominator: int) -> Decimal:
    """numerator / denominator as a percentage, two places, half-up; 0 for 0/0."""
    if denominator == 0:
        return ZERO.quantize(TWO_PLACES)
    return (Decimal(numerator * 100) / Decimal(denominator)).quantize(
        TWO_PLACES, rounding=ROUND_HALF_UP
    )


def _sum_hours(values: Iterable[Decimal | None]) -> Decimal:
    return sum((Decimal(v) for v in values if v is not None), ZERO)


@dataclass
class TaskStatistics:
    """Counts, rates and hour totals over a set of tasks."""

    total_tasks: int = 0

    # By status
    todo_count: int = 0
    in_progress_count: int = 0
    in_review_count: int = 0
    done_count: int = 0
    cancelled_count: int = 0

    # By priority
    low_priority_count: int = 0
    medium_priority_count: int = 0
    high_priority_count: int = 0
    urgent_priority_count: int = 0

    # Time based
    overdue_count: int = 0
    due_today_count: int = 0
    due_this_week_count: int = 0

    # Assignment
    unassigned_count: int = 0
    assigned_to_me_count: int = 0
    created_by_me_count: int = 0

    # Rates, as percentages
    completion_rate: Decimal = field(default_factory=lambda: percentage(0, 0))
    on_time_completion_rate: Decimal = field(default_factory=lambda: percentage(0, 0))
    my_tasks_completion_rate: Decimal = field(default_factory=lambda: percentage(0, 0))

    # Hours
    total_estimated_hours: Decimal = ZERO
    total_actual_hours: Decimal = ZERO
    my_tasks_estimated_hours: Decimal = ZERO
    my_tasks_actual_hours: Decimal = ZERO


_STATUS_FIELDS = {
    TaskStatus.TODO: "todo_count",
    TaskStatus.IN_PROGRESS: "in_progress_count",
    TaskStatus.IN_REVIEW: "in_review_count",
    TaskStatus.DONE: "done_count",
    TaskStatus.CANCELLED: "cancelled_count",
}

_PRIORITY_FIELDS = {
    TaskPriority.LOW: "low_priority_count",
    TaskPriority.MEDIUM: "medium_priority_count",
    TaskPriority.HIGH: "high_priority_count",
    TaskPriority.URGENT: "urgent_priority_count",
}


def _is_due_today(task: Task, now: datetime) -> bool:
    if task.due_date is None or task.status in TERMINAL_STATUSES:
        return False
    return task.due_date.astimezone(now.tzinfo).date() == now.date()


def _is_due_this_week(task: Task, now: datetime) -> bool:
    if task.due_date is None or task.status in TERMINAL_STATUSES:
        return False
    return now < task.due_date < now + timedelta(days=7)


def _completed_on_time(task: Task) -> bool:
    return (
        task.status == TaskStatus.DONE
        and task.completed_at is not None
        and task.due_date is not None
        and task.completed_at < task.due_date
    )


def aggregate_task_statistics(
    tasks: Iterable[Task],
    now: datetime,
    subject_id: UUID | None = None,
) -> TaskStatistics:
    """
    Aggregate a task collection as of ``now``.

    The function does not decide scope: it sums whatever it is given. Callers
    pick the collection (one project, the user's projects, or everything for a
    system admin).

    Args:
        tasks: Tasks to aggregate
        now: Reference instant for overdue / due-soon checks
        subject_id: User the "me" counts refer to; None leaves them at zero

    Returns:
        TaskStatistics for the collection
    """
    tasks = list(tasks)
    stats = TaskStatistics(total_tasks=len(tasks))

    for task in tasks:
        status_field = _STATUS_FIELDS[task.status]
        setattr(stats, status_field, getattr(stats, status_field) + 1)
        priority_field = _PRIORITY_FIELDS[task.priority]
        setattr(stats, priority_field, getattr(stats, priority_field) + 1)

    stats.overdue_count = sum(1 for t in tasks if is_overdue(t, now))
    stats.due_today_count = sum(1 for t in tasks if _is_due_today(t, now))
    stats.due_this_week_count = sum(1 for t in tasks if _is_due_this_week(t, now))

    stats.unassigned_count = sum(1 for t in tasks if t.assigned_to_id is None)

    my_tasks = []
    if subject_id is not None:
        my_tasks = [t for t in tasks if t.assigned_to_id == subject_id]
        stats.assigned_to_me_count = len(my_tasks)
        stats.created_by_me_count = sum(1 for t in tasks if t.created_by_id == subject_id)

    on_time = sum(1 for t in tasks if _completed_on_time(t))
    my_done = sum(1 for t in my_tasks if t.status == TaskStatus.DONE)

    stats.completion_rate = percentage(stats.done_count, stats.total_tasks)
    stats.on_time_completion_rate = percentage(on_time, stats.done_count)
    stats.my_tasks_completion_rate = percentage(my_done, len(my_tasks))

    stats.total_estimated_hours = _sum_hours(t.estimated_hours for t in tasks)
    stats.total_actual_hours = _sum_hours(t.actual_hours for t in tasks)
    stats.my_tasks_estimated_hours = _sum_hours(t.estimated_hours for t in my_tasks)
    stats.my_tasks_actual_hours = _sum_hours(t.actual_hours for t in my_tasks)

    return stats


@dataclass
class UserStatistics:
    """Personal dashboard: project counts plus task statistics."""

    total_projects: int
    owned_projects: int
    member_projects: int
    tasks: TaskStatistics


class StatisticsService:
    """Service choosing the task scope and aggregating it."""

    def __init__(self, db: AsyncSession, clock: Clock | None = None):
        self.db = db
        self.clock = clock if clock is not None else system_clock

    async def project_statistics(self, user: User, project_id: UUID) -> TaskStatistics:
        result = await self.db.execute(
            select(Project.id).where(Project.id == project_id, Project.active_criteria())
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Project not found")
        if not await access_control.has_access(self.db, user, project_id):
            raise ForbiddenError("You don't have access to this project")

        result = await self.db.execute(
            select(Task).where(Task.project_id == project_id, Task.active_criteria())
        )
        return aggregate_task_statistics(
            result.scalars().all(),
            self.clock.now(),
            subject_id=user.id,
        )

    async def user_statistics(self, user: User) -> UserStatistics:
        """Statistics across every project the user can see.

        System admins get the system-wide picture.
        """
        task_query = (
            select(Task)
            .join(Project, Project.id == Task.project_id)
            .where(Task.active_criteria(), Project.active_criteria())
        )

        if access_control.is_system_admin(user):
            result = await self.db.execute(
                select(func.count(Project.id)).where(Project.active_criteria())
            )
            total_projects = result.scalar() or 0
        else:
            task_query = task_query.join(
                ProjectMember,
                (ProjectMember.project_id == Task.project_id)
                & (ProjectMember.user_id == user.id),
            )
            total_projects = None

        result = await self.db.execute(
            select(func.count(Project.id)).where(
                Project.owner_id == user.id,
                Project.active_criteria(),
            )
        )
        owned_projects = result.scalar() or 0

        result = await self.db.execute(
            select(func.count(Project.id))
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(
                ProjectMember.user_id == user.id,
                Project.owner_id != user.id,
                Project.active_criteria(),
            )
        )
        member_projects = result.scalar() or 0

        if total_projects is None:
            total_projects = owned_projects + member_projects

        result = await self.db.execute(task_query)
        stats = aggregate_task_statistics(
            result.scalars().unique().all(),
            self.clock.now(),
            subject_id=user.id,
        )

        logger.debug(
            "user_statistics_computed",
            user_id=str(user.id),
            total_projects=total_projects,
            total_tasks=stats.total_tasks,
        )

        return UserStatistics(
            total_projects=total_projects,
            owned_projects=owned_projects,
            member_projects=member_projects,
            tasks=stats,
        )
