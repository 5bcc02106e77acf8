"""Admin audit log SQLAlchemy ORM model definitions.

Tables:
    - admin_audit_logs: Immutable record of administrative actions
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class AuditAction(enum.StrEnum):
    PAYMENT_REFUND = "PAYMENT_REFUND"
    PAYMENT_STATUS_UPDATE = "PAYMENT_STATUS_UPDATE"
    PAYMENT_MANUAL_VERIFICATION = "PAYMENT_MANUAL_VERIFICATION"
    PAYMENT_BULK_OPERATION = "PAYMENT_BULK_OPERATION"
    RECEIPT_VERIFICATION = "RECEIPT_VERIFICATION"
    RECEIPT_REGENERATION = "RECEIPT_REGENERATION"
    USER_UPDATE = "USER_UPDATE"
    USER_DEACTIVATION = "USER_DEACTIVATION"
    ROLE_PERMISSIONS_UPDATE = "ROLE_PERMISSIONS_UPDATE"
    SYSTEM_CONFIG_UPDATE = "SYSTEM_CONFIG_UPDATE"


class AuditResource(enum.StrEnum):
    PAYMENT = "PAYMENT"
    RECEIPT = "RECEIPT"
    USER = "USER"
    ROLE = "ROLE"
    SYSTEM_CONFIG = "SYSTEM_CONFIG"


class AdminAuditLog(Base):
    """Admin audit log model.

    Admin name and email are copied at write time so entries stay readable
    after the admin account changes or is removed.

    Attributes:
        id: Unique identifier
        action: AuditAction value
        admin_user_id / admin_user_email / admin_user_name: Acting admin
        resource_type / resource_id: Affected record
        old_values / new_values: State before and after the action
        metadata_: Free-form context (reason, bulk summary, ...)
        ip_address / user_agent: Request origin
        created_at: Action timestamp
    """

    __tablename__ = "admin_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    admin_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    admin_user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(100), nullable=False)
    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
