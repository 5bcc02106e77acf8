"""System log SQLAlchemy ORM model definitions.

Tables:
    - system_logs: Operational events (logins, payments, admin actions, ...)
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, enum_check


class SystemLogLevel(enum.StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SystemLogCategory(enum.StrEnum):
    AUTHENTICATION = "AUTHENTICATION"
    ADMIN_ACTION = "ADMIN_ACTION"
    PAYMENT_PROCESSING = "PAYMENT_PROCESSING"
    API_REQUEST = "API_REQUEST"
    EMAIL_SERVICE = "EMAIL_SERVICE"
    SECURITY_EVENT = "SECURITY_EVENT"
    DATABASE_OPERATION = "DATABASE_OPERATION"
    PERFORMANCE = "PERFORMANCE"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    AUDIT_TRAIL = "AUDIT_TRAIL"


class SystemLog(Base):
    """System log entry.

    ``user_id`` is a plain column (no foreign key) so entries survive the
    removal of the account they mention; email, name and role are copied.

    Attributes:
        id: Unique identifier
        level: SystemLogLevel value
        category: SystemLogCategory value
        event_type: Short event name, e.g. "login_failed"
        message: Human-readable summary
        user_id / user_email / user_name / user_role: Acting or affected user
        ip_address / user_agent: Request origin
        resource_type / resource_id: Affected record
        duration: Elapsed milliseconds, when measured
        status_code: HTTP-style outcome code
        old_values / new_values / metadata_: Sanitized context
        error_message: Failure detail, at most 2000 characters
        created_at: Event timestamp
    """

    __tablename__ = "system_logs"
    __table_args__ = (
        CheckConstraint(enum_check("level", SystemLogLevel), name="ck_system_logs_level"),
        CheckConstraint(enum_check("category", SystemLogCategory), name="ck_system_logs_category"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    level: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
