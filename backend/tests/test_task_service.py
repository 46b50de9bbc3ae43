import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from taskboard.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from taskboard.models import Notification, NotificationType, Task, TaskPriority, TaskStatus
from taskboard.services.notification import NotificationService
from taskboard.services.project import ProjectCreateData, ProjectService
from taskboard.services.task import TaskCreateData, TaskService, apply_status_transition

from conftest import NOW


@pytest.fixture
def notifier(mocker):
    return mocker.AsyncMock()


@pytest.fixture
def service(db, notifier, clock):
    return TaskService(db, notifier=notifier, clock=clock)


async def _create(service, user, project, **kwargs):
    return await service.create_task(
        user, TaskCreateData(project_id=project.id, title=kwargs.pop("title", "Task"), **kwargs)
    )


# =============================================================================
# Status transition rule
# =============================================================================


def test_status_transition_sets_and_clears_completed_at():
    task = Task(status=TaskStatus.TODO)

    apply_status_transition(task, TaskStatus.DONE, NOW)
    assert task.completed_at == NOW

    later = NOW + timedelta(hours=1)
    apply_status_transition(task, TaskStatus.DONE, later)
    assert task.completed_at == NOW

    apply_status_transition(task, TaskStatus.IN_REVIEW, later)
    assert task.completed_at is None


async def test_create_defaults(service, owner, project):
    task = await _create(service, owner, project)

    assert task.status == TaskStatus.TODO
    assert task.priority == TaskPriority.MEDIUM
    assert task.position == 0
    assert task.completed_at is None
    assert task.created_by_id == owner.id
    assert task.is_active


async def test_create_directly_in_done_sets_completed_at(service, owner, project, clock):
    task = await _create(service, owner, project, status=TaskStatus.DONE)
    assert task.completed_at == clock.now()


async def test_done_then_cancelled_round_trip(service, owner, project, clock):
    task = await _create(service, owner, project)

    task = await service.update_task(owner, task.id, {"status": TaskStatus.DONE})
    assert task.completed_at == clock.now()

    task = await service.update_task(owner, task.id, {"status": TaskStatus.CANCELLED})
    assert task.completed_at is None


async def test_update_without_status_keeps_completion(service, owner, project, clock):
    task = await _create(service, owner, project, status=TaskStatus.DONE)

    task = await service.update_task(
        owner, task.id, {"title": "Renamed", "actual_hours": Decimal("3.5")}
    )

    assert task.status == TaskStatus.DONE
    assert task.completed_at == clock.now()
    assert task.title == "Renamed"


async def test_update_ignores_none_and_blank_title(service, owner, project):
    task = await _create(service, owner, project, title="Keep me", description="Body")

    task = await service.update_task(
        owner, task.id, {"title": "   ", "description": None, "priority": TaskPriority.HIGH}
    )

    assert task.title == "Keep me"
    assert task.description == "Body"
    assert task.priority == TaskPriority.HIGH


async def test_update_log_lists_only_changed_fields(mocker, service, owner, project):
    task = await _create(service, owner, project)
    logger = mocker.patch("taskboard.services.task.logger")

    await service.update_task(owner, task.id, {"status": None, "priority": TaskPriority.LOW})
    await service.update_task(owner, task.id, {"status": TaskStatus.IN_PROGRESS})

    fields = [
        c.kwargs["fields"] for c in logger.info.call_args_list if c.args == ("task_updated",)
    ]
    assert fields == [["priority"], ["status"]]


async def test_naive_due_date_is_stored_as_utc(service, owner, project):
    task = await _create(service, owner, project, due_date=datetime(2026, 3, 1, 9, 0))
    assert task.due_date == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    task = await service.update_task(owner, task.id, {"due_date": datetime(2026, 3, 20, 9, 0)})
    assert task.due_date.tzinfo is not None
    assert task.due_date > NOW


# =============================================================================
# Permissions
# =============================================================================


async def test_member_is_read_only(service, owner, member, project):
    task = await _create(service, owner, project)

    assert (await service.get_task(member, task.id)).id == task.id
    assert [t.id for t in await service.list_project_tasks(member, project.id)] == [task.id]

    with pytest.raises(ForbiddenError):
        await _create(service, member, project)
    with pytest.raises(ForbiddenError):
        await service.update_task(member, task.id, {"title": "Nope"})
    with pytest.raises(ForbiddenError):
        await service.delete_task(member, task.id)


async def test_outsider_cannot_read(service, owner, outsider, project):
    task = await _create(service, owner, project)

    with pytest.raises(ForbiddenError):
        await service.get_task(outsider, task.id)
    with pytest.raises(ForbiddenError):
        await service.list_project_tasks(outsider, project.id)


async def test_project_admin_can_edit_but_not_delete_others_task(service, owner, manager, project):
    task = await _create(service, owner, project)

    updated = await service.update_task(manager, task.id, {"status": TaskStatus.IN_PROGRESS})
    assert updated.status == TaskStatus.IN_PROGRESS

    with pytest.raises(ForbiddenError):
        await service.delete_task(manager, task.id)


async def test_creator_can_delete_own_task(db, service, manager, project):
    task = await _create(service, manager, project)

    await service.delete_task(manager, task.id)

    with pytest.raises(NotFoundError):
        await service.get_task(manager, task.id)
    stored = await db.get(Task, task.id)
    assert stored is not None and not stored.is_active


async def test_owner_and_admin_can_delete(service, owner, manager, admin, project):
    first = await _create(service, manager, project)
    second = await _create(service, manager, project)

    await service.delete_task(owner, first.id)
    await service.delete_task(admin, second.id)

    assert await service.list_project_tasks(owner, project.id) == []


async def test_create_in_deleted_project_is_not_found(db, service, owner, project):
    await ProjectService(db).delete_project(owner, project.id)

    with pytest.raises(NotFoundError):
        await _create(service, owner, project)


async def test_missing_task_is_not_found(service, owner):
    with pytest.raises(NotFoundError):
        await service.get_task(owner, uuid.uuid4())


# =============================================================================
# Assignment & notifications
# =============================================================================


async def test_assigning_non_member_is_invalid_input(service, owner, outsider, project):
    with pytest.raises(InvalidInputError):
        await _create(service, owner, project, assigned_to_id=outsider.id)


async def test_failed_reassignment_leaves_task_untouched(service, owner, outsider, project):
    task = await _create(service, owner, project, title="Original")

    with pytest.raises(InvalidInputError):
        await service.update_task(
            owner, task.id, {"title": "Changed", "assigned_to_id": outsider.id}
        )

    assert task.title == "Original"
    assert task.assigned_to_id is None


async def test_admin_may_assign_any_existing_user(service, admin, outsider, project):
    task = await _create(service, admin, project, assigned_to_id=outsider.id)
    assert task.assigned_to_id == outsider.id

    with pytest.raises(NotFoundError):
        await _create(service, admin, project, assigned_to_id=uuid.uuid4())


async def test_create_with_assignee_notifies(service, notifier, owner, member, project):
    task = await _create(service, owner, project, title="Write docs", assigned_to_id=member.id)

    notifier.notify.assert_awaited_once_with(
        member.id,
        task.id,
        NotificationType.TASK_ASSIGNED,
        "New Task Assigned",
        "You have been assigned to task 'Write docs' in project 'Apollo'",
    )


async def test_self_assignment_does_not_notify(service, notifier, owner, project):
    await _create(service, owner, project, assigned_to_id=owner.id)
    notifier.notify.assert_not_awaited()


async def test_reassignment_notifies_new_assignee(service, notifier, owner, manager, member, project):
    task = await _create(service, owner, project, assigned_to_id=member.id)
    notifier.notify.reset_mock()

    # same assignee again: nothing to announce
    await service.update_task(owner, task.id, {"assigned_to_id": member.id})
    notifier.notify.assert_not_awaited()

    await service.update_task(owner, task.id, {"assigned_to_id": manager.id})
    notifier.notify.assert_awaited_once()
    args = notifier.notify.await_args.args
    assert args[0] == manager.id
    assert args[2] == NotificationType.TASK_REASSIGNED
    assert args[3] == "Task Reassigned to You"


async def test_reassigning_to_self_does_not_notify(service, notifier, owner, manager, member, project):
    task = await _create(service, owner, project, assigned_to_id=member.id)
    notifier.notify.reset_mock()

    await service.update_task(manager, task.id, {"assigned_to_id": manager.id})
    notifier.notify.assert_not_awaited()


async def test_notifier_failure_does_not_fail_creation(db, notifier, clock, owner, member, project):
    notifier.notify.side_effect = RuntimeError("mail server down")
    service = TaskService(db, notifier=notifier, clock=clock)

    task = await _create(service, owner, project, assigned_to_id=member.id)

    assert (await service.get_task(owner, task.id)).assigned_to_id == member.id


async def test_persistent_notification_written_on_assignment(db, clock, owner, member, project):
    service = TaskService(db, clock=clock)

    task = await _create(service, owner, project, assigned_to_id=member.id)

    notifications = await NotificationService(db).list_notifications(member)
    assert len(notifications) == 1
    assert notifications[0].task_id == task.id
    assert notifications[0].notification_type == NotificationType.TASK_ASSIGNED


async def test_failed_notification_write_is_rolled_back_alone(db, clock, owner, member, project):
    class MisaddressedNotifier(NotificationService):
        async def notify(self, user_id, task_id, kind, title, message):
            # unknown recipient violates the users foreign key
            await super().notify(uuid.uuid4(), task_id, kind, title, message)

    service = TaskService(db, notifier=MisaddressedNotifier(db), clock=clock)

    task = await _create(service, owner, project, assigned_to_id=member.id)
    await db.flush()

    assert (await db.get(Task, task.id)) is not None
    count = await db.execute(select(func.count(Notification.id)))
    assert count.scalar() == 0


# =============================================================================
# Listing
# =============================================================================


async def test_list_project_tasks_ordered_by_position(service, owner, project):
    third = await _create(service, owner, project, position=3)
    first = await _create(service, owner, project, position=1)

    tasks = await service.list_project_tasks(owner, project.id)

    assert [t.id for t in tasks] == [first.id, third.id]


async def test_list_user_tasks_scopes_to_membership(db, service, owner, member, outsider, admin, project):
    visible = await _create(service, owner, project)
    other_project = await ProjectService(db).create_project(outsider, ProjectCreateData(name="Hidden"))
    hidden = await _create(service, outsider, other_project)

    member_tasks = {t.id for t in await service.list_user_tasks(member)}
    admin_tasks = {t.id for t in await service.list_user_tasks(admin)}

    assert member_tasks == {visible.id}
    assert admin_tasks == {visible.id, hidden.id}
