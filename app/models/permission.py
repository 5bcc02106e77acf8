"""Permission and RolePermission SQLAlchemy ORM model definitions.

Permissions form a catalogue of ``module:action`` codes; roles are granted
permissions through the role_permissions mapping table.

Tables:
    - permissions: Global permission catalogue
    - role_permissions: Role ↔ permission mapping
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class PermissionAction(enum.StrEnum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MANAGE = "MANAGE"
    EXECUTE = "EXECUTE"


class PermissionModule(enum.StrEnum):
    USER = "USER"
    VENUE = "VENUE"
    RESERVATION = "RESERVATION"
    PAYMENT = "PAYMENT"
    SERVICE = "SERVICE"
    ROLE = "ROLE"
    PERMISSION = "PERMISSION"
    ADMIN = "ADMIN"
    REPORT = "REPORT"
    AUDIT = "AUDIT"


def permission_code(module: str, action: str) -> str:
    """Canonical permission code, e.g. ``venue:read``."""
    return f"{module.lower()}:{action.lower()}"


class Permission(Base):
    """Permission model.

    Attributes:
        id: Unique identifier
        code: Permission code (e.g. "venue:read")
        module: Module name (e.g. "VENUE")
        action: Action name (e.g. "READ")
        description: Human-readable description
        created_at: Creation timestamp
    """

    __tablename__ = "permissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    module: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("module", "action", name="uq_permissions_module_action"),
    )

    role_permissions = relationship("RolePermission", back_populates="permission", cascade="all, delete-orphan")


class RolePermission(Base):
    """Role ↔ permission mapping model."""

    __tablename__ = "role_permissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions")
