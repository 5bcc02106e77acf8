"""Payment Pydantic request/response schema definitions.

Covers the guest payment flow (intent, confirm, history), admin refunds,
admin payment actions and bulk operations.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from app.models.payment import PaymentStatus
from app.schemas.common import CamelModel, PaginatedData

# Upper bound on ids accepted by a single bulk request
MAX_BULK_IDS: int = 100


# === Guest flow ===

class CreateIntentRequest(CamelModel):
    """PaymentIntent creation request.

    Attributes:
        reservation_id: Reservation being paid (must belong to the caller)
        amount: Amount in major units, > 0
        currency: ISO code; defaults to STRIPE_CURRENCY
    """

    reservation_id: UUID
    amount: float = Field(gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class CreateIntentResponse(CamelModel):
    client_secret: str | None
    payment_intent_id: str
    payment_id: str
    amount: float
    currency: str
    status: str


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str


class RefundRequest(CamelModel):
    """Refund request. Omitted amount means a full refund."""

    payment_id: UUID
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = None


class PaymentResponse(CamelModel):
    id: str
    reservation_id: str
    user_id: str
    user_email: str | None = None
    user_name: str | None = None
    service_name: str | None = None
    venue_name: str | None = None
    amount: float
    currency: str
    status: str
    method: str
    stripe_payment_id: str | None
    description: str | None
    failure_reason: str | None
    refunded_amount: float
    metadata: dict[str, Any]
    paid_at: datetime | None
    refunded_at: datetime | None
    created_at: datetime
    updated_at: datetime


class PaymentSummary(CamelModel):
    """Aggregates over a payment listing.

    Attributes:
        total_amount: Sum of COMPLETED payments
        total_refunded: Sum of refunded amounts
        count: Payments matched
        by_status: Count per PaymentStatus
    """

    total_amount: float
    total_refunded: float
    count: int
    by_status: dict[str, int]


# === Admin actions ===

class PaymentActionRequest(CamelModel):
    """Single admin payment action.

    Attributes:
        action: refund | updateStatus | manualVerification
        payment_id: Target payment
        amount: Refund amount (refund only; defaults to the full amount)
        reason: Refund reason
        status: New status (updateStatus only)
        notes: Admin notes
        verification_method: How the payment was checked (defaults to "manual")
    """

    action: Literal["refund", "updateStatus", "manualVerification"]
    payment_id: UUID
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = None
    status: PaymentStatus | None = None
    notes: str | None = None
    verification_method: str | None = None


# === Bulk operations ===

class BulkIdsRequest(CamelModel):
    payment_ids: list[str] = Field(min_length=1, max_length=MAX_BULK_IDS)
    notes: str | None = None


class BulkStatusRequest(BulkIdsRequest):
    """Bulk status change; ``bypass_validation`` skips the transition table."""

    new_status: PaymentStatus
    bypass_validation: bool = False


class BulkRefundRequest(BulkIdsRequest):
    """Bulk refund. ``refund_amount`` applies per payment; omitted means full."""

    refund_amount: float | None = Field(default=None, gt=0)
    refund_reason: str = Field(min_length=1)


class BulkValidateRequest(BulkIdsRequest):
    operation: Literal["status", "refund", "cancel", "mark-failed"]
    new_status: PaymentStatus | None = None


class BulkFailure(CamelModel):
    id: str
    error: str
    code: str


class BulkSummary(CamelModel):
    total: int
    successful: int
    failed: int
    skipped: int


class BulkOperationResult(CamelModel):
    """Per-item outcome of a bulk operation.

    ``skipped`` counts ids already in the requested end state.
    """

    successful: list[str] = []
    failed: list[BulkFailure] = []
    summary: BulkSummary


class BulkValidationResult(CamelModel):
    valid: bool
    errors: list[str]


class BulkPreview(CamelModel):
    total_amount: float
    affected_reservations: int
    summary: dict[str, Any]
    warnings: list[str]


class PaymentListData(PaginatedData):
    """Paginated payments plus aggregates over the same filters."""

    summary: PaymentSummary
