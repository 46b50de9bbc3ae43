import uuid
from datetime import timedelta, timezone
from decimal import Decimal

import pytest

from taskboard.exceptions import ForbiddenError, NotFoundError
from taskboard.models import Task, TaskPriority, TaskStatus
from taskboard.services.project import ProjectCreateData, ProjectService
from taskboard.services.statistics import (
    StatisticsService,
    aggregate_task_statistics,
    percentage,
)
from taskboard.services.task import TaskCreateData, TaskService

from conftest import NOW

ME = uuid.uuid4()


def _task(status=TaskStatus.TODO, priority=TaskPriority.MEDIUM, **kwargs):
    return Task(status=status, priority=priority, **kwargs)


def test_completion_and_on_time_rates():
    due = NOW - timedelta(days=1)
    tasks = [
        _task(TaskStatus.DONE, due_date=due, completed_at=due - timedelta(hours=2)),
        _task(TaskStatus.DONE, due_date=due, completed_at=due + timedelta(hours=2)),
        _task(TaskStatus.TODO),
        _task(TaskStatus.IN_PROGRESS),
    ]

    stats = aggregate_task_statistics(tasks, NOW)

    assert stats.total_tasks == 4
    assert stats.done_count == 2
    assert stats.completion_rate == Decimal("50.00")
    assert stats.on_time_completion_rate == Decimal("50.00")


def test_done_without_due_date_counts_only_toward_completion():
    tasks = [
        _task(TaskStatus.DONE, completed_at=NOW),
        _task(TaskStatus.DONE, due_date=NOW + timedelta(days=1), completed_at=NOW),
        _task(TaskStatus.TODO),
    ]

    stats = aggregate_task_statistics(tasks, NOW)

    assert stats.completion_rate == Decimal("66.67")
    assert stats.on_time_completion_rate == Decimal("50.00")


def test_empty_collection_has_zero_rates():
    stats = aggregate_task_statistics([], NOW, subject_id=ME)

    assert stats.total_tasks == 0
    assert stats.completion_rate == Decimal("0.00")
    assert stats.on_time_completion_rate == Decimal("0.00")
    assert stats.my_tasks_completion_rate == Decimal("0.00")
    assert stats.total_estimated_hours == Decimal("0")


def test_rates_round_half_up():
    assert percentage(1, 8) == Decimal("12.50")
    assert percentage(1, 3) == Decimal("33.33")
    assert percentage(2, 3) == Decimal("66.67")
    assert percentage(1, 200) == Decimal("0.50")
    assert percentage(1, 4000) == Decimal("0.03")
    assert percentage(3, 3) == Decimal("100.00")


def test_status_and_priority_buckets():
    tasks = [
        _task(TaskStatus.TODO, TaskPriority.LOW),
        _task(TaskStatus.IN_PROGRESS, TaskPriority.MEDIUM),
        _task(TaskStatus.IN_REVIEW, TaskPriority.HIGH),
        _task(TaskStatus.CANCELLED, TaskPriority.URGENT),
        _task(TaskStatus.CANCELLED, TaskPriority.URGENT),
    ]

    stats = aggregate_task_statistics(tasks, NOW)

    assert (stats.todo_count, stats.in_progress_count, stats.in_review_count) == (1, 1, 1)
    assert (stats.done_count, stats.cancelled_count) == (0, 2)
    assert stats.low_priority_count == 1
    assert stats.medium_priority_count == 1
    assert stats.high_priority_count == 1
    assert stats.urgent_priority_count == 2


def test_due_windows_skip_terminal_tasks():
    tasks = [
        _task(due_date=NOW - timedelta(hours=1)),  # overdue and due today
        _task(due_date=NOW + timedelta(hours=3)),  # due today and this week
        _task(due_date=NOW + timedelta(days=2)),  # this week
        _task(due_date=NOW + timedelta(days=7)),  # boundary, excluded
        _task(TaskStatus.DONE, due_date=NOW + timedelta(hours=1), completed_at=NOW),
        _task(TaskStatus.CANCELLED, due_date=NOW - timedelta(days=1)),
    ]

    stats = aggregate_task_statistics(tasks, NOW)

    assert stats.overdue_count == 1
    assert stats.due_today_count == 2
    assert stats.due_this_week_count == 2


def test_due_today_uses_the_clock_timezone():
    east = timezone(timedelta(hours=10))
    now = NOW.astimezone(east)  # 22:00 local
    # due 15:00 UTC, which is already the next day at UTC+10
    task = _task(due_date=NOW + timedelta(hours=3))

    assert aggregate_task_statistics([task], NOW).due_today_count == 1
    assert aggregate_task_statistics([task], now).due_today_count == 0


def test_personal_counts_and_hours():
    other = uuid.uuid4()
    tasks = [
        _task(TaskStatus.DONE, assigned_to_id=ME, created_by_id=other, completed_at=NOW,
              estimated_hours=Decimal("2.50"), actual_hours=Decimal("3.00")),
        _task(assigned_to_id=ME, created_by_id=ME, estimated_hours=Decimal("1.25")),
        _task(assigned_to_id=other, created_by_id=ME, actual_hours=Decimal("4.00")),
        _task(created_by_id=other),
    ]

    stats = aggregate_task_statistics(tasks, NOW, subject_id=ME)

    assert stats.assigned_to_me_count == 2
    assert stats.created_by_me_count == 2
    assert stats.unassigned_count == 1
    assert stats.my_tasks_completion_rate == Decimal("50.00")
    assert stats.total_estimated_hours == Decimal("3.75")
    assert stats.total_actual_hours == Decimal("7.00")
    assert stats.my_tasks_estimated_hours == Decimal("3.75")
    assert stats.my_tasks_actual_hours == Decimal("3.00")


async def test_project_statistics_requires_access(db, clock, owner, outsider, project):
    service = StatisticsService(db, clock=clock)
    tasks = TaskService(db, clock=clock)
    await tasks.create_task(owner, TaskCreateData(project_id=project.id, title="A"))
    await tasks.create_task(
        owner, TaskCreateData(project_id=project.id, title="B", status=TaskStatus.DONE)
    )

    stats = await service.project_statistics(owner, project.id)
    assert stats.total_tasks == 2
    assert stats.completion_rate == Decimal("50.00")
    assert stats.created_by_me_count == 2

    with pytest.raises(ForbiddenError):
        await service.project_statistics(outsider, project.id)
    with pytest.raises(NotFoundError):
        await service.project_statistics(owner, uuid.uuid4())


async def test_user_statistics_counts_projects(db, clock, owner, member, admin, project):
    projects = ProjectService(db)
    await projects.create_project(member, ProjectCreateData(name="Side project"))
    retired = await projects.create_project(owner, ProjectCreateData(name="Retired"))
    await projects.delete_project(owner, retired.id)
    await TaskService(db, clock=clock).create_task(
        owner, TaskCreateData(project_id=project.id, title="Shared")
    )

    service = StatisticsService(db, clock=clock)

    mine = await service.user_statistics(member)
    assert (mine.total_projects, mine.owned_projects, mine.member_projects) == (2, 1, 1)
    assert mine.tasks.total_tasks == 1

    theirs = await service.user_statistics(owner)
    assert (theirs.total_projects, theirs.owned_projects, theirs.member_projects) == (1, 1, 0)

    everything = await service.user_statistics(admin)
    assert everything.total_projects == 2
    assert everything.tasks.total_tasks == 1
