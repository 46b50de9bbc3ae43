"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from taskboard.api import router as api_router
from taskboard.config import get_settings
from taskboard.db.session import close_db, init_db
from taskboard.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    TaskboardError,
)
from taskboard.middleware.request_context import RequestContextMiddleware

logger = structlog.get_logger()
settings = get_settings()

# Domain error kind -> HTTP status
ERROR_STATUS_CODES: dict[type[TaskboardError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
}


def configure_logging() -> None:
    """Configure structlog: JSON in production, console output elsewhere."""
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.environment == "production"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        cache_logger_on_first_use=True,
    )


def status_code_for(exc: TaskboardError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_taskboard_error(request: Request, exc: TaskboardError) -> ORJSONResponse:
    """Translate a domain failure into an HTTP error response."""
    status_code = status_code_for(exc)
    logger.info(
        "request_rejected",
        code=exc.code,
        status_code=status_code,
        detail=exc.message,
    )

    headers = None
    if isinstance(exc, ConflictError) and exc.retryable:
        headers = {"Retry-After": "1"}

    return ORJSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    logger.info("app_starting", version=settings.app_version, environment=settings.environment)
    await init_db()
    logger.info("database_connected")

    yield

    # Shutdown
    logger.info("app_stopping")
    await close_db()
    logger.info("database_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Team project, task and comment management",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_exception_handler(TaskboardError, handle_taskboard_error)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
