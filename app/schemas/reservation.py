"""Reservation Pydantic request/response schema definitions."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, model_validator

from app.models.reservation import ReservationStatus
from app.schemas.common import CamelModel


class ReservationCreate(CamelModel):
    """Reservation creation request.

    Attributes:
        service_id: Booked service
        check_in / check_out: Booked range; check_out must be later than check_in
        guests: Guest count, at least 1
        special_requests: Free-text notes for the venue
    """

    service_id: UUID
    check_in: datetime
    check_out: datetime
    guests: int = Field(default=1, ge=1)
    special_requests: str | None = Field(default=None, max_length=2000)


class ReservationUpdate(CamelModel):
    """Reservation update request (partial).

    Guests may edit dates, guests and special requests while PENDING;
    staff (MANAGER+) may additionally change the status.
    """

    check_in: datetime | None = None
    check_out: datetime | None = None
    guests: int | None = Field(default=None, ge=1)
    special_requests: str | None = Field(default=None, max_length=2000)
    status: ReservationStatus | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "ReservationUpdate":
        if self.check_in and self.check_out and self.check_out <= self.check_in:
            raise ValueError("checkOut must be after checkIn")
        return self


class ReservationCancelRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=1000)


class ReservationReminderRequest(CamelModel):
    type: Literal["checkin", "checkout"]


class ReservationResponse(CamelModel):
    id: str
    confirmation_code: str
    user_id: str
    guest_name: str | None = None
    guest_email: str | None = None
    service_id: str
    service_name: str | None = None
    venue_id: str
    venue_name: str | None = None
    check_in: datetime
    check_out: datetime
    guests: int
    total_amount: float
    currency: str
    status: str
    special_requests: str | None
    cancel_reason: str | None
    cancelled_at: datetime | None
    refund_amount: float | None
    refund_status: str | None
    payment_status: str | None = None
    created_at: datetime
    updated_at: datetime
