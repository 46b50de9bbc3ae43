"""Tasks API endpoints."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.api.v1.auth import CurrentUser
from taskboard.db.session import get_db_session
from taskboard.models.enums import ReactionState, TaskPriority, TaskStatus
from taskboard.models.project import Task, TaskComment
from taskboard.services.comment import CommentService, ReactionResult
from taskboard.services.task import TaskCreateData, TaskService
from taskboard.services.task_filter import TaskFilter, is_overdue
from taskboard.utils.clock import Clock, get_clock

router = APIRouter()


# Request/Response Models
class TaskCreate(BaseModel):
    """Create a new task."""

    project_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to_id: UUID | None = None
    estimated_hours: Decimal | None = Field(None, ge=0)
    due_date: datetime | None = None
    position: int | None = None


class TaskUpdate(BaseModel):
    """Update a task. Omitted fields keep their current value."""

    title: str | None = Field(None, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to_id: UUID | None = None
    estimated_hours: Decimal | None = Field(None, ge=0)
    actual_hours: Decimal | None = Field(None, ge=0)
    due_date: datetime | None = None
    position: int | None = None


class TaskFilterRequest(BaseModel):
    """Filter criteria; every field is optional."""

    project_id: UUID | None = None
    statuses: list[TaskStatus] = Field(default_factory=list)
    priorities: list[TaskPriority] = Field(default_factory=list)
    assigned_to_id: UUID | None = None
    created_by_id: UUID | None = None
    due_date_from: datetime | None = None
    due_date_to: datetime | None = None
    search_text: str | None = Field(None, max_length=200)
    overdue: bool = False


class TaskResponse(BaseModel):
    """Task response model."""

    id: UUID
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    project_id: UUID
    created_by_id: UUID
    assigned_to_id: UUID | None
    estimated_hours: Decimal | None
    actual_hours: Decimal | None
    due_date: datetime | None
    completed_at: datetime | None
    position: int
    is_overdue: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_task(cls, task: Task, now: datetime) -> "TaskResponse":
        response = cls.model_validate(task)
        response.is_overdue = is_overdue(task, now)
        return response


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class CommentResponse(BaseModel):
    """Comment with counters and the caller's own reaction."""

    id: UUID
    task_id: UUID
    user_id: UUID
    content: str
    likes_count: int
    dislikes_count: int
    user_reaction: ReactionState = ReactionState.NONE
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_comment(cls, comment: TaskComment, reaction: ReactionState) -> "CommentResponse":
        response = cls.model_validate(comment)
        response.user_reaction = reaction
        return response


class ReactionResponse(BaseModel):
    comment_id: UUID
    likes_count: int
    dislikes_count: int
    user_reaction: ReactionState

    @classmethod
    def from_result(cls, result: ReactionResult) -> "ReactionResponse":
        return cls(
            comment_id=result.comment.id,
            likes_count=result.comment.likes_count,
            dislikes_count=result.comment.dislikes_count,
            user_reaction=result.user_reaction,
        )


# Task endpoints
@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> TaskResponse:
    """Create a new task."""
    service = TaskService(db, clock=clock)
    task = await service.create_task(current_user, TaskCreateData(**task_data.model_dump()))
    return TaskResponse.from_task(task, clock.now())


@router.get("/", response_model=list[TaskResponse])
async def list_my_tasks(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> list[TaskResponse]:
    """All active tasks in the projects the current user belongs to."""
    tasks = await TaskService(db, clock=clock).list_user_tasks(current_user)
    now = clock.now()
    return [TaskResponse.from_task(t, now) for t in tasks]


@router.post("/filter", response_model=list[TaskResponse])
async def filter_tasks(
    criteria: TaskFilterRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> list[TaskResponse]:
    """Filter tasks in one project, or across every visible project."""
    task_filter = TaskFilter(
        project_id=criteria.project_id,
        statuses=set(criteria.statuses),
        priorities=set(criteria.priorities),
        assigned_to_id=criteria.assigned_to_id,
        created_by_id=criteria.created_by_id,
        due_date_from=criteria.due_date_from,
        due_date_to=criteria.due_date_to,
        search_text=criteria.search_text,
        overdue=criteria.overdue,
    )
    tasks = await TaskService(db, clock=clock).filter_tasks(current_user, task_filter)
    now = clock.now()
    return [TaskResponse.from_task(t, now) for t in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> TaskResponse:
    task = await TaskService(db, clock=clock).get_task(current_user, task_id)
    return TaskResponse.from_task(task, clock.now())


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    task_data: TaskUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> TaskResponse:
    """Update a task."""
    service = TaskService(db, clock=clock)
    task = await service.update_task(
        current_user,
        task_id,
        task_data.model_dump(exclude_unset=True),
    )
    return TaskResponse.from_task(task, clock.now())


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """Soft delete a task."""
    await TaskService(db).delete_task(current_user, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Comment endpoints
@router.get("/{task_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[CommentResponse]:
    pairs = await CommentService(db).list_comments(current_user, task_id)
    return [CommentResponse.from_comment(c, r) for c, r in pairs]


@router.post(
    "/{task_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    task_id: UUID,
    comment_data: CommentCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> CommentResponse:
    comment = await CommentService(db).add_comment(current_user, task_id, comment_data.content)
    return CommentResponse.from_comment(comment, ReactionState.NONE)


@router.post("/comments/{comment_id}/like", response_model=ReactionResponse)
async def like_comment(
    comment_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ReactionResponse:
    """Toggle a like on a comment; switches an existing dislike."""
    result = await CommentService(db).like(current_user, comment_id)
    return ReactionResponse.from_result(result)


@router.post("/comments/{comment_id}/dislike", response_model=ReactionResponse)
async def dislike_comment(
    comment_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ReactionResponse:
    """Toggle a dislike on a comment; switches an existing like."""
    result = await CommentService(db).dislike(current_user, comment_id)
    return ReactionResponse.from_result(result)
