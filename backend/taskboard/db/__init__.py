"""Database package."""

from taskboard.db.base import Base, BaseModel, SoftDeleteMixin, TimestampMixin, UUIDMixin

__all__ = ["Base", "BaseModel", "SoftDeleteMixin", "TimestampMixin", "UUIDMixin"]
