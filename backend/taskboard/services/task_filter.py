"""In-memory task filtering.

Each criterion is an independent predicate; absent criteria are no-ops, so
any combination can be supplied and the order they run in does not matter.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from taskboard.models.enums import TERMINAL_STATUSES, TaskPriority, TaskStatus
from taskboard.models.project import Task
from taskboard.utils.clock import as_utc

TaskPredicate = Callable[[Task], bool]


@dataclass
class TaskFilter:
    """Filter criteria. Every field is optional.

    Attributes:
        project_id: Restrict the base set to one project (access is checked
            once against it before filtering)
        statuses: Keep tasks whose status is in this set
        priorities: Keep tasks whose priority is in this set
        assigned_to_id: Keep tasks assigned to this user
        created_by_id: Keep tasks created by this user
        due_date_from: Keep tasks due strictly after this instant
        due_date_to: Keep tasks due strictly before this instant
        search_text: Case-insensitive substring of title or description
        overdue: When True, keep only overdue tasks
    """

    project_id: UUID | None = None
    statuses: set[TaskStatus] = field(default_factory=set)
    priorities: set[TaskPriority] = field(default_factory=set)
    assigned_to_id: UUID | None = None
    created_by_id: UUID | None = None
    due_date_from: datetime | None = None
    due_date_to: datetime | None = None
    search_text: str | None = None
    overdue: bool = False

    def __post_init__(self) -> None:
        self.due_date_from = as_utc(self.due_date_from)
        self.due_date_to = as_utc(self.due_date_to)


def is_overdue(task: Task, now: datetime) -> bool:
    """Past due and not in a terminal status."""
    return (
        task.due_date is not None
        and task.due_date < now
        and task.status not in TERMINAL_STATUSES
    )


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle in haystack.lower()


def build_predicates(criteria: TaskFilter, now: datetime) -> list[TaskPredicate]:
    """Translate criteria into the list of predicates that apply."""
    predicates: list[TaskPredicate] = []

    if criteria.statuses:
        statuses = set(criteria.statuses)
        predicates.append(lambda t: t.status in statuses)
    if criteria.priorities:
        priorities = set(criteria.priorities)
        predicates.append(lambda t: t.priority in priorities)
    if criteria.assigned_to_id is not None:
        assignee = criteria.assigned_to_id
        predicates.append(lambda t: t.assigned_to_id == assignee)
    if criteria.created_by_id is not None:
        creator = criteria.created_by_id
        predicates.append(lambda t: t.created_by_id == creator)
    if criteria.due_date_from is not None:
        lower = criteria.due_date_from
        predicates.append(lambda t: t.due_date is not None and t.due_date > lower)
    if criteria.due_date_to is not None:
        upper = criteria.due_date_to
        predicates.append(lambda t: t.due_date is not None and t.due_date < upper)
    if criteria.search_text and criteria.search_text.strip():
        needle = criteria.search_text.strip().lower()
        predicates.append(
            lambda t: _contains(t.title, needle) or _contains(t.description, needle)
        )
    if criteria.overdue:
        predicates.append(lambda t: is_overdue(t, now))

    return predicates


def filter_tasks(tasks: Iterable[Task], criteria: TaskFilter, now: datetime) -> list[Task]:
    """Return the tasks matching every supplied criterion, preserving order."""
    predicates = build_predicates(criteria, now)
    return [t for t in tasks if all(p(t) for p in predicates)]
