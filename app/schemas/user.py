"""User, Role, Permission and Settings Pydantic request/response schema definitions.

Covers admin user management, the role hierarchy and its permission grants,
and per-user notification/profile settings.
"""

from datetime import datetime

from pydantic import EmailStr, Field

from app.schemas.common import CamelModel


# === Role schemas ===

class RoleCreate(CamelModel):
    """Role creation request.

    Attributes:
        name: Role name, stored upper-case and unique
        description: Human-readable description
        level: Authority level, 1 = highest; custom roles start at 2
    """

    name: str = Field(min_length=2, max_length=50)
    description: str | None = None
    level: int = Field(ge=2, le=99)


class RoleUpdate(CamelModel):
    """Role update request (partial)."""

    name: str | None = Field(default=None, min_length=2, max_length=50)
    description: str | None = None
    level: int | None = Field(default=None, ge=2, le=99)


class RoleResponse(CamelModel):
    id: str
    name: str
    description: str | None
    level: int
    is_system: bool
    user_count: int = 0
    permissions: list[str] = []
    created_at: datetime


# === Permission schemas ===

class PermissionResponse(CamelModel):
    """Permission catalogue entry. ``code`` is ``module:action`` lower-case."""

    id: str
    code: str
    module: str
    action: str
    description: str | None


class RolePermissionsUpdate(CamelModel):
    """Full replacement of a role's granted permission codes."""

    permissions: list[str]


# === User schemas ===

class UserCreate(CamelModel):
    """Admin user creation request.

    Attributes:
        email: Login email, unique
        password: Plain text, hashed server-side
        first_name / last_name: Display name
        phone: Optional phone
        role: Role name to assign (default USER)
    """

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = None
    role: str = "USER"


class UserUpdate(CamelModel):
    """User update request (partial).

    Profile fields are editable by the user; role and is_active only by ADMIN+.
    """

    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = None
    role: str | None = None
    is_active: bool | None = None


class UserResponse(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: str | None
    role: str
    role_level: int
    is_active: bool
    email_verified: bool
    last_login_at: datetime | None
    created_at: datetime


# === Settings schemas ===

class NotificationSettingsResponse(CamelModel):
    email_notifications: bool
    push_notifications: bool
    marketing_emails: bool
    reservation_reminders: bool


class NotificationSettingsUpdate(CamelModel):
    """Partial upsert; omitted flags keep their stored value."""

    email_notifications: bool | None = None
    push_notifications: bool | None = None
    marketing_emails: bool | None = None
    reservation_reminders: bool | None = None


class ProfileSettingsResponse(CamelModel):
    first_name: str
    last_name: str
    email: str
    phone: str | None
    language: str
    timezone: str


class ProfileSettingsUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = None
    language: str | None = Field(default=None, max_length=10)
    timezone: str | None = Field(default=None, max_length=50)
