"""Project management endpoints."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.api.v1.auth import CurrentUser
from taskboard.api.v1.tasks import TaskResponse
from taskboard.db.session import get_db_session
from taskboard.models.enums import ProjectRole
from taskboard.models.project import ProjectMember
from taskboard.services.project import MemberAddData, ProjectCreateData, ProjectService
from taskboard.services.statistics import StatisticsService
from taskboard.services.task import TaskService
from taskboard.utils.clock import Clock, get_clock

router = APIRouter()

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# Request/Response Models
class ProjectCreate(BaseModel):
    """Create a new project."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(None, pattern=HEX_COLOR)


class ProjectUpdate(BaseModel):
    """Update a project."""

    name: str | None = Field(None, max_length=100)
    description: str | None = None
    color: str | None = Field(None, pattern=HEX_COLOR)


class ProjectResponse(BaseModel):
    """Project response model."""

    id: UUID
    name: str
    description: str | None
    color: str
    owner_id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectMemberAdd(BaseModel):
    """Add a member by user id or by email."""

    user_id: UUID | None = None
    email: EmailStr | None = None
    role: ProjectRole = ProjectRole.MEMBER


class ProjectMemberRoleUpdate(BaseModel):
    role: ProjectRole


class ProjectMemberResponse(BaseModel):
    """Project member response."""

    user_id: UUID
    role: ProjectRole
    joined_at: datetime
    email: str
    display_name: str

    @classmethod
    def from_member(cls, member: ProjectMember) -> "ProjectMemberResponse":
        return cls(
            user_id=member.user_id,
            role=member.role,
            joined_at=member.joined_at,
            email=member.user.email,
            display_name=member.user.display_name,
        )


class TaskStatisticsResponse(BaseModel):
    """Counts, rates (percentages) and hour totals over a task set."""

    total_tasks: int
    todo_count: int
    in_progress_count: int
    in_review_count: int
    done_count: int
    cancelled_count: int
    low_priority_count: int
    medium_priority_count: int
    high_priority_count: int
    urgent_priority_count: int
    overdue_count: int
    due_today_count: int
    due_this_week_count: int
    unassigned_count: int
    assigned_to_me_count: int
    created_by_me_count: int
    completion_rate: Decimal
    on_time_completion_rate: Decimal
    my_tasks_completion_rate: Decimal
    total_estimated_hours: Decimal
    total_actual_hours: Decimal
    my_tasks_estimated_hours: Decimal
    my_tasks_actual_hours: Decimal

    class Config:
        from_attributes = True


# Project endpoints
@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    """Create a new project; the creator becomes its owner."""
    project = await ProjectService(db).create_project(
        current_user,
        ProjectCreateData(**project_data.model_dump()),
    )
    return ProjectResponse.model_validate(project)


@router.get("/", response_model=list[ProjectResponse])
async def list_projects(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[ProjectResponse]:
    projects = await ProjectService(db).list_projects(current_user)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    project = await ProjectService(db).get_project(current_user, project_id)
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    project_data: ProjectUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    project = await ProjectService(db).update_project(
        current_user,
        project_id,
        project_data.model_dump(exclude_unset=True),
    )
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """Soft delete a project (owner only)."""
    await ProjectService(db).delete_project(current_user, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/tasks", response_model=list[TaskResponse])
async def list_project_tasks(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> list[TaskResponse]:
    tasks = await TaskService(db, clock=clock).list_project_tasks(current_user, project_id)
    now = clock.now()
    return [TaskResponse.from_task(t, now) for t in tasks]


@router.get("/{project_id}/statistics", response_model=TaskStatisticsResponse)
async def get_project_statistics(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> TaskStatisticsResponse:
    stats = await StatisticsService(db, clock=clock).project_statistics(
        current_user, project_id
    )
    return TaskStatisticsResponse.model_validate(stats)


# Member endpoints
@router.get("/{project_id}/members", response_model=list[ProjectMemberResponse])
async def list_members(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[ProjectMemberResponse]:
    members = await ProjectService(db).list_members(current_user, project_id)
    return [ProjectMemberResponse.from_member(m) for m in members]


@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: UUID,
    member_data: ProjectMemberAdd,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectMemberResponse:
    """Add a member to the project (owner only)."""
    member = await ProjectService(db).add_member(
        current_user,
        project_id,
        MemberAddData(
            user_id=member_data.user_id,
            email=member_data.email,
            role=member_data.role,
        ),
    )
    return ProjectMemberResponse.from_member(member)


@router.patch("/{project_id}/members/{user_id}", response_model=ProjectMemberResponse)
async def update_member_role(
    project_id: UUID,
    user_id: UUID,
    role_data: ProjectMemberRoleUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectMemberResponse:
    member = await ProjectService(db).update_member_role(
        current_user, project_id, user_id, role_data.role
    )
    return ProjectMemberResponse.from_member(member)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    project_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await ProjectService(db).remove_member(current_user, project_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
