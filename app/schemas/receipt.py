"""Receipt Pydantic request/response schema definitions."""

from datetime import datetime
from uuid import UUID
from typing import Any

from pydantic import Field

from app.models.payment import ReceiptStatus, ReceiptType
from app.schemas.common import CamelModel


class ReceiptCreate(CamelModel):
    """Admin receipt creation from an existing payment.

    Creating a PAYMENT receipt twice for the same payment returns the first one.
    """

    payment_id: UUID
    type: ReceiptType = ReceiptType.PAYMENT
    notes: str | None = None


class ReceiptVerifyRequest(CamelModel):
    """Verification decision. ``status`` must be VERIFIED or REJECTED."""

    status: ReceiptStatus = ReceiptStatus.VERIFIED
    notes: str | None = None


class BulkVerifyRequest(CamelModel):
    receipt_ids: list[str] = Field(min_length=1, max_length=100)
    notes: str | None = None


class BulkVerifyItem(CamelModel):
    id: str
    success: bool
    error: str | None = None


class ReceiptResponse(CamelModel):
    id: str
    receipt_number: str
    payment_id: str
    reservation_id: str | None
    user_id: str
    user_email: str | None = None
    type: str
    status: str
    amount: float
    subtotal: float
    tax: float
    currency: str
    pdf_url: str | None
    is_verified: bool
    verified_at: datetime | None
    verified_by: str | None
    notes: str | None
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class ReceiptRegenerateRequest(CamelModel):
    reason: str = Field(min_length=1, max_length=1000)
