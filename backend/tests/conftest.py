"""Shared fixtures: in-memory database, users, a seeded project, API client."""

import os
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Settings are read at import time; point them at SQLite before taskboard loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from taskboard.db.base import Base  # noqa: E402
from taskboard.models import ProjectRole, User, UserRole  # noqa: E402
from taskboard.services.project import (  # noqa: E402
    MemberAddData,
    ProjectCreateData,
    ProjectService,
)
from taskboard.utils.clock import FixedClock  # noqa: E402

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's implicit transactions break SAVEPOINT; take over BEGIN
    @event.listens_for(eng.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest.fixture
async def db(engine) -> AsyncIterator[AsyncSession]:
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def make_user(db):
    async def _make(
        email: str,
        first_name: str = "Test",
        last_name: str = "User",
        role: UserRole = UserRole.USER,
    ) -> User:
        user = User(email=email, first_name=first_name, last_name=last_name, role=role)
        db.add(user)
        await db.flush()
        return user

    return _make


@pytest.fixture
async def owner(make_user) -> User:
    return await make_user("owner@acme.io", "Olivia", "Owner")


@pytest.fixture
async def manager(make_user) -> User:
    """Holds the project-level ADMIN role."""
    return await make_user("manager@acme.io", "Mina", "Manager")


@pytest.fixture
async def member(make_user) -> User:
    return await make_user("member@acme.io", "Mark", "Member")


@pytest.fixture
async def outsider(make_user) -> User:
    return await make_user("outsider@acme.io", "Oscar", "Outsider")


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user("admin@acme.io", "Ada", "Admin", role=UserRole.ADMIN)


@pytest.fixture
async def project(db, owner, manager, member):
    """Project owned by ``owner`` with ``manager`` as ADMIN and ``member`` as MEMBER."""
    service = ProjectService(db)
    created = await service.create_project(owner, ProjectCreateData(name="Apollo"))
    await service.add_member(
        owner, created.id, MemberAddData(user_id=manager.id, role=ProjectRole.ADMIN)
    )
    await service.add_member(
        owner, created.id, MemberAddData(user_id=member.id, role=ProjectRole.MEMBER)
    )
    return created
