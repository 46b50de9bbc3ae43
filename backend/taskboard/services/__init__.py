"""Services package."""

from taskboard.services.comment import CommentService, ReactionResult, next_reaction_state
from taskboard.services.notification import NotificationService, Notifier
from taskboard.services.project import MemberAddData, ProjectCreateData, ProjectService
from taskboard.services.statistics import (
    StatisticsService,
    TaskStatistics,
    UserStatistics,
    aggregate_task_statistics,
)
from taskboard.services.task import TaskCreateData, TaskService, apply_status_transition
from taskboard.services.task_filter import TaskFilter, filter_tasks, is_overdue
from taskboard.services.user import UserService

__all__ = [
    "CommentService",
    "ReactionResult",
    "next_reaction_state",
    "NotificationService",
    "Notifier",
    "MemberAddData",
    "ProjectCreateData",
    "ProjectService",
    "StatisticsService",
    "TaskStatistics",
    "UserStatistics",
    "aggregate_task_statistics",
    "TaskCreateData",
    "TaskService",
    "apply_status_transition",
    "TaskFilter",
    "filter_tasks",
    "is_overdue",
    "UserService",
]
