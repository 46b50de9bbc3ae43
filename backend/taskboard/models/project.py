"""Project, membership, task and comment models."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskboard.db.base import BaseModel, SoftDeleteMixin, UTCDateTime, utcnow
from taskboard.models.enums import (
    ProjectRole,
    ReactionType,
    TaskPriority,
    TaskStatus,
)

if TYPE_CHECKING:
    from taskboard.models.user import User


class Project(BaseModel, SoftDeleteMixin):
    """Team project. Exactly one OWNER member at all times: its creator."""

    __tablename__ = "projects"

    # Basic info
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Color for visual identification
    color: Mapped[str] = mapped_column(String(7), nullable=False)  # hex color

    # Ownership
    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # Relationships
    members: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ProjectMember.joined_at",
    )

    def __repr__(self) -> str:
        try:
            return f"<Project {self.name}>"
        except Exception:
            return "<Project detached>"


class ProjectMember(BaseModel):
    """Project membership with role-based access."""

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[ProjectRole] = mapped_column(
        SAEnum(ProjectRole, native_enum=False, length=20),
        nullable=False,
        default=ProjectRole.MEMBER,
    )
    joined_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        return f"<ProjectMember project={self.project_id} user={self.user_id} role={self.role}>"


class Task(BaseModel, SoftDeleteMixin):
    """Task within a project."""

    __tablename__ = "tasks"

    # Basic info
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status and priority
    status: Mapped[TaskStatus] = mapped_column(
        SAEnum(TaskStatus, native_enum=False, length=20),
        nullable=False,
        default=TaskStatus.TODO,
        index=True,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        SAEnum(TaskPriority, native_enum=False, length=20),
        nullable=False,
        default=TaskPriority.MEDIUM,
    )

    # Ownership and assignment; project and creator never change
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    assigned_to_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
        index=True,
    )

    # Time tracking (optional)
    estimated_hours: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    actual_hours: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)

    # Timeline
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Manual ordering
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Task {self.id} status={self.status}>"


class TaskComment(BaseModel):
    """Comment on a task, with denormalized reaction counters."""

    __tablename__ = "task_comments"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Must equal the number of LIKE / DISLIKE reactions on this comment
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dislikes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<TaskComment {self.id} on task={self.task_id}>"


class CommentReaction(BaseModel):
    """A user's single like or dislike on a comment."""

    __tablename__ = "comment_reactions"
    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_reaction"),
    )

    comment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("task_comments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    reaction_type: Mapped[ReactionType] = mapped_column(
        SAEnum(ReactionType, native_enum=False, length=10),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CommentReaction {self.reaction_type} by user={self.user_id} on comment={self.comment_id}>"
