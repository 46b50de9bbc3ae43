"""API router package."""

from fastapi import APIRouter

from taskboard.api.v1 import health, notifications, projects, tasks, users

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
