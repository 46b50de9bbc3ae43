"""User model."""

from sqlalchemy import Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.db.base import BaseModel, SoftDeleteMixin
from taskboard.models.enums import UserRole


class User(BaseModel, SoftDeleteMixin):
    """Registered account. Deactivated accounts are kept, never deleted."""

    __tablename__ = "users"

    # Basic info
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # System role
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, native_enum=False, length=20),
        nullable=False,
        default=UserRole.USER,
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        """System ADMIN; bypasses project-level checks."""
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        try:
            return f"<User {self.email}>"
        except Exception:
            return f"<User id={self.id}>"
