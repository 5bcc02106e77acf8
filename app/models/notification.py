"""Notification SQLAlchemy ORM model definitions.

Each notification can reference its source entity through
reference_type and reference_id.

Tables:
    - notifications: User notifications with polymorphic references
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Notification(Base):
    """Notification model. In-app messages delivered to users.

    Notification Types (type field values):
        - "reservation_created"
        - "reservation_confirmed"
        - "reservation_cancelled"
        - "payment_completed"
        - "payment_failed"
        - "payment_refunded"
        - "reservation_capacity_conflict"

    Reference Types (reference_type field values):
        - "reservation": Links to reservations table
        - "payment": Links to payments table

    Attributes:
        id: Unique identifier
        user_id: Recipient user
        type: Notification type, see above
        title: Short heading
        message: Human-readable notification message
        reference_type / reference_id: Source entity
        venue_id: Venue the source entity belongs to, scopes the admin inbox
        is_read: Whether the user has read this notification
        created_at: Creation timestamp
    """

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    venue_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("venues.id", ondelete="SET NULL"), nullable=True, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
