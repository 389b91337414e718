"""
User model for authentication and authorization.
"""

import enum
from typing import Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fleet_planner.core.database import Base
from fleet_planner.models.base import TimestampMixin, UUIDMixin, enum_type


class UserRole(str, enum.Enum):
    """User roles for RBAC."""

    VIEWER = "viewer"  # Read-only access
    DELIVERY_CREATOR = "delivery_creator"  # Create and maintain deliveries
    TRIP_PLANNER = "trip_planner"  # Plan trips and assign deliveries
    ADMIN = "admin"  # Full system access


class User(Base, UUIDMixin, TimestampMixin):
    """User model for authentication."""

    __tablename__ = "users"

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Profile fields
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole, "user_role"),
        default=UserRole.VIEWER,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Refresh token storage (for token invalidation)
    refresh_token: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
