"""Payment Router. Stripe checkout, webhook, refunds and payment history.

Permission Matrix:
    - create-intent / confirm / history: authenticated owner
    - read one: owner or MANAGER+ in scope
    - refund: ADMIN+
    - webhook: unauthenticated, verified by the stripe-signature header
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, page_params, require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.payment import ConfirmPaymentRequest, CreateIntentRequest, RefundRequest
from app.services.payment_service import payment_service

router: APIRouter = APIRouter()


@router.post("/create-intent", status_code=201)
async def create_payment_intent(
    data: CreateIntentRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await payment_service.create_intent(db, data, current_user)
    await db.commit()
    return success_response(result, "Payment intent created")


@router.post("/confirm")
async def confirm_payment(
    data: ConfirmPaymentRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Sync the payment with the current PaymentIntent status."""
    result = await payment_service.confirm_payment(db, data, current_user)
    await db.commit()
    return success_response(result, "Payment status updated")


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    stripe_signature: Annotated[str | None, Header(alias="stripe-signature")] = None,
) -> dict:
    """Stripe event receiver. The raw body is needed for signature checks."""
    payload: bytes = await request.body()
    result = await payment_service.handle_webhook(db, payload, stripe_signature)
    await db.commit()
    return success_response(result, "Webhook processed")


@router.post("/refund")
async def refund_payment(
    data: RefundRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await payment_service.refund_payment(db, data, current_user)
    await db.commit()
    return success_response(result, "Refund processed")


@router.get("")
async def list_my_payments(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    status: str | None = None,
    reservation_id: Annotated[UUID | None, Query(alias="reservationId")] = None,
) -> dict:
    page, limit = paging
    result = await payment_service.list_user_payments(
        db, current_user, page, limit, status.upper() if status else None, reservation_id
    )
    return success_response(result)


@router.get("/{payment_id}")
async def get_payment(
    payment_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return success_response(await payment_service.get_payment(db, payment_id, current_user))
