"""Enumerations shared by models, services and API schemas."""

from enum import Enum


class UserRole(str, Enum):
    """Account-wide tier. ADMIN sees every project and acts as owner."""

    USER = "USER"
    ADMIN = "ADMIN"


class ProjectRole(str, Enum):
    """Per-project capability tier."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


# Statuses excluded from overdue / due-soon counts
TERMINAL_STATUSES = frozenset({TaskStatus.DONE, TaskStatus.CANCELLED})


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ReactionType(str, Enum):
    """Stored reaction on a comment."""

    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


class ReactionState(str, Enum):
    """A user's reaction state on a comment, including the absence of one."""

    NONE = "NONE"
    LIKED = "LIKED"
    DISLIKED = "DISLIKED"


class NotificationType(str, Enum):
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_REASSIGNED = "TASK_REASSIGNED"
