"""Liveness and readiness probes."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import get_settings
from taskboard.db.session import get_db_session
from taskboard.models import Notification, Project, Task, User

router = APIRouter()
logger = structlog.get_logger()

# One table per service area; readiness fails until migrations created them all
SCHEMA_PROBES = {
    "users": User,
    "projects": Project,
    "tasks": Task,
    "notifications": Notification,
}


@router.get("/health")
async def health_check() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> dict[str, Any]:
    """Report whether every table the services query is reachable.

    Responds 503 when any table is missing or the database is down, so a
    load balancer keeps traffic away until ``alembic upgrade head`` has run.
    """
    checks: dict[str, str] = {}
    for name, model in SCHEMA_PROBES.items():
        try:
            await db.execute(select(model.id).limit(1))
            checks[name] = "ok"
        except SQLAlchemyError as e:
            logger.warning("readiness_check_failed", table=name, error=str(e))
            checks[name] = "unavailable"
            # a failed statement poisons the transaction for the next probe
            await db.rollback()

    ready = all(v == "ok" for v in checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {"status": "ready" if ready else "not_ready", "checks": checks}
