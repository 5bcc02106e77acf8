"""Reservation SQLAlchemy ORM model definitions.

Tables:
    - reservations: A booking of a Service by a User for a date range and guest count
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, enum_check


class ReservationStatus(enum.StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class RefundStatus(enum.StrEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


# Statuses whose guests count against service capacity
BLOCKING_STATUSES: tuple[str, ...] = (ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN)


class Reservation(Base):
    """Reservation model.

    Status lifecycle:
        PENDING → CONFIRMED → CHECKED_IN → CHECKED_OUT
        PENDING | CONFIRMED → CANCELLED
        CONFIRMED → NO_SHOW

    Attributes:
        id: Unique identifier
        confirmation_code: Short human-readable code shown to guests
        user_id / service_id / venue_id: Owning guest, booked service and its venue
        check_in / check_out: Booked range (UTC)
        guests: Guest count
        total_amount: Computed price at booking time
        currency: ISO currency code copied from the service
        status: ReservationStatus value
        special_requests: Guest notes
        cancel_reason / cancelled_at: Cancellation details
        refund_amount / refund_status: Refund owed by the cancellation policy
    """

    __tablename__ = "reservations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    confirmation_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    venue_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    check_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_out: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    guests: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MXN")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReservationStatus.PENDING)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    refund_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(enum_check("status", ReservationStatus), name="ck_reservations_status"),
        CheckConstraint("guests >= 1", name="ck_reservations_guests"),
        CheckConstraint("check_out > check_in", name="ck_reservations_dates"),
    )

    user = relationship("User")
    service = relationship("Service", back_populates="reservations")
    venue = relationship("Venue", back_populates="reservations")
    payments = relationship("Payment", back_populates="reservation", order_by="Payment.created_at")
