import uuid

import pytest
from sqlalchemy import select

from taskboard.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from taskboard.models import ProjectMember, ProjectRole
from taskboard.services.project import MemberAddData, ProjectCreateData, ProjectService


@pytest.fixture
def service(db):
    return ProjectService(db)


async def _owner_rows(db, project_id):
    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.role == ProjectRole.OWNER,
        )
    )
    return list(result.scalars().all())


async def test_create_enrolls_creator_as_sole_owner(db, service, owner):
    project = await service.create_project(
        owner, ProjectCreateData(name="Gemini", description="Second stage")
    )

    rows = await _owner_rows(db, project.id)
    assert [row.user_id for row in rows] == [owner.id]
    assert project.owner_id == owner.id
    assert project.color == "#3B82F6"


async def test_add_member_by_email_then_duplicate_conflicts(db, service, owner, project, make_user):
    newcomer = await make_user("x@test")

    member = await service.add_member(
        owner, project.id, MemberAddData(email="x@test", role=ProjectRole.MEMBER)
    )
    assert member.user_id == newcomer.id
    assert member.role == ProjectRole.MEMBER

    with pytest.raises(ConflictError):
        await service.add_member(
            owner, project.id, MemberAddData(email="x@test", role=ProjectRole.MEMBER)
        )


@pytest.mark.parametrize(
    "data",
    [
        MemberAddData(),
        MemberAddData(user_id=uuid.uuid4(), email="someone@acme.io"),
    ],
)
async def test_add_member_requires_exactly_one_identifier(service, owner, project, data):
    with pytest.raises(InvalidInputError):
        await service.add_member(owner, project.id, data)


async def test_add_member_cannot_grant_owner(service, owner, outsider, project):
    with pytest.raises(InvalidInputError):
        await service.add_member(
            owner, project.id, MemberAddData(user_id=outsider.id, role=ProjectRole.OWNER)
        )


async def test_add_unknown_user_is_not_found(service, owner, project):
    with pytest.raises(NotFoundError):
        await service.add_member(owner, project.id, MemberAddData(email="ghost@acme.io"))


async def test_only_owner_manages_members(service, manager, outsider, project):
    with pytest.raises(ForbiddenError):
        await service.add_member(manager, project.id, MemberAddData(user_id=outsider.id))


async def test_owner_cannot_change_own_role(service, owner, project):
    with pytest.raises(ForbiddenError):
        await service.update_member_role(owner, project.id, owner.id, ProjectRole.MEMBER)


async def test_admin_cannot_change_owner_role(db, service, owner, admin, project):
    with pytest.raises(ForbiddenError):
        await service.update_member_role(admin, project.id, owner.id, ProjectRole.ADMIN)

    assert [row.user_id for row in await _owner_rows(db, project.id)] == [owner.id]


async def test_update_member_role(service, owner, member, project):
    updated = await service.update_member_role(owner, project.id, member.id, ProjectRole.ADMIN)
    assert updated.role == ProjectRole.ADMIN

    with pytest.raises(InvalidInputError):
        await service.update_member_role(owner, project.id, member.id, ProjectRole.OWNER)
    with pytest.raises(NotFoundError):
        await service.update_member_role(owner, project.id, uuid.uuid4(), ProjectRole.MEMBER)


async def test_remove_member(service, owner, member, project):
    await service.remove_member(owner, project.id, member.id)

    members = await service.list_members(owner, project.id)
    assert member.id not in {m.user_id for m in members}

    with pytest.raises(NotFoundError):
        await service.remove_member(owner, project.id, member.id)


async def test_owner_cannot_be_removed(service, owner, admin, project):
    with pytest.raises(ForbiddenError):
        await service.remove_member(owner, project.id, owner.id)
    with pytest.raises(ForbiddenError):
        await service.remove_member(admin, project.id, owner.id)


async def test_list_members_ordered_by_join_time(service, owner, manager, member, outsider, project):
    members = await service.list_members(owner, project.id)
    assert [m.user_id for m in members] == [owner.id, manager.id, member.id]

    with pytest.raises(ForbiddenError):
        await service.list_members(outsider, project.id)


async def test_update_project(service, owner, manager, member, project):
    updated = await service.update_project(
        manager, project.id, {"name": "  ", "description": "Moonshot", "color": "#000000"}
    )
    assert updated.name == "Apollo"
    assert updated.description == "Moonshot"
    assert updated.color == "#000000"

    with pytest.raises(ForbiddenError):
        await service.update_project(member, project.id, {"name": "Hijacked"})


async def test_delete_project_is_owner_only(service, owner, manager, project):
    with pytest.raises(ForbiddenError):
        await service.delete_project(manager, project.id)

    await service.delete_project(owner, project.id)

    with pytest.raises(NotFoundError):
        await service.get_project(owner, project.id)
    assert await service.list_projects(owner) == []


async def test_list_projects_visibility(service, owner, member, outsider, admin, project):
    solo = await service.create_project(outsider, ProjectCreateData(name="Solo"))

    assert [p.id for p in await service.list_projects(member)] == [project.id]
    assert [p.id for p in await service.list_projects(outsider)] == [solo.id]
    assert {p.id for p in await service.list_projects(admin)} == {project.id, solo.id}
