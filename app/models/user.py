"""User, Role and UserSettings SQLAlchemy ORM model definitions.

Implements role-based access control (RBAC) with a global level hierarchy.

Tables:
    - roles: Roles with level-based hierarchy (1 = SUPER_ADMIN)
    - users: User accounts
    - user_settings: Per-user notification and profile preferences
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class RoleName(enum.StrEnum):
    """Built-in role names."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"
    USER = "USER"


# Lower level = higher authority
ROLE_LEVELS: dict[str, int] = {
    RoleName.SUPER_ADMIN: 1,
    RoleName.ADMIN: 2,
    RoleName.MANAGER: 3,
    RoleName.EMPLOYEE: 4,
    RoleName.USER: 5,
}


class Role(Base):
    """Role model. Defines authority levels across the platform.

    Lower level numbers indicate higher authority:
        1 = SUPER_ADMIN, 2 = ADMIN, 3 = MANAGER, 4 = EMPLOYEE, 5 = USER

    Attributes:
        id: Unique identifier
        name: Role name, unique (e.g. "ADMIN")
        description: Human-readable description
        level: Authority level, 1 = highest
        is_system: Built-in role, cannot be deleted or renamed
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    users = relationship("User", back_populates="role")
    role_permissions = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")


class User(Base):
    """User model. Guests, venue staff and administrators share this table.

    Attributes:
        id: Unique identifier
        role_id: Assigned role foreign key
        email: Login email, globally unique
        password_hash: bcrypt-hashed password
        first_name / last_name: Display name parts
        phone: Contact phone
        is_active: Active status, soft-delete pattern
        email_verified: Email verification status
        last_login_at: Timestamp of the last successful login
        created_at / updated_at: Audit timestamps

    Relationships:
        role: Assigned role
        refresh_tokens: Active refresh tokens (cascade delete)
        settings: Notification/profile preferences (one-to-one)
        owned_venues: Venues this user administers
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("roles.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    role = relationship("Role", back_populates="users")
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")
    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    owned_venues = relationship("Venue", back_populates="owner")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class UserSettings(Base):
    """Per-user preferences. Created lazily with defaults on first read.

    Attributes:
        email_notifications: Transactional email opt-in (default True)
        push_notifications: Push opt-in (default True)
        marketing_emails: Marketing opt-in (default False)
        reservation_reminders: Check-in/out reminder opt-in (default True)
        language: UI language code
        timezone: IANA timezone name
    """

    __tablename__ = "user_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    push_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    marketing_emails: Mapped[bool] = mapped_column(Boolean, default=False)
    reservation_reminders: Mapped[bool] = mapped_column(Boolean, default=True)
    language: Mapped[str] = mapped_column(String(10), default="es")
    timezone: Mapped[str] = mapped_column(String(50), default="America/Mexico_City")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="settings")
