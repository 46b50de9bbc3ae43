"""SQLAlchemy models package."""

from taskboard.models.enums import (
    NotificationType,
    ProjectRole,
    ReactionState,
    ReactionType,
    TaskPriority,
    TaskStatus,
    UserRole,
)
from taskboard.models.user import User
from taskboard.models.project import (
    CommentReaction,
    Project,
    ProjectMember,
    Task,
    TaskComment,
)
from taskboard.models.notification import Notification

__all__ = [
    # Enums
    "NotificationType",
    "ProjectRole",
    "ReactionState",
    "ReactionType",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
    # Models
    "User",
    "Project",
    "ProjectMember",
    "Task",
    "TaskComment",
    "CommentReaction",
    "Notification",
]
