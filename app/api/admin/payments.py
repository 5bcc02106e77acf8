"""Admin Payment Router. Back-office payment listing, actions, bulk operations and invoices.

Permission Matrix:
    - List / invoice: ADMIN+
    - Actions and every bulk operation: SUPER_ADMIN
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, page_params, require_admin, require_super_admin
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.payment import (
    BulkIdsRequest,
    BulkRefundRequest,
    BulkStatusRequest,
    BulkValidateRequest,
    PaymentActionRequest,
)
from app.services.admin_payment_service import admin_payment_service
from app.services.bulk_payment_service import bulk_payment_service

router: APIRouter = APIRouter()


@router.get("")
async def list_payments(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    status: str | None = None,
    method: str | None = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
    search: str | None = None,
) -> dict:
    """Every payment matching the filters plus totals over the same filters."""
    page, limit = paging
    result = await admin_payment_service.list_payments(
        db, page, limit,
        status=status.upper() if status else None,
        method=method.upper() if method else None,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return success_response(result)


@router.post("/actions")
async def perform_payment_action(
    data: PaymentActionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    """refund | updateStatus | manualVerification, audited with caller IP and user agent."""
    result = await admin_payment_service.perform_action(db, data, current_user, info)
    await db.commit()
    return success_response(result, f"Payment action {data.action} completed")


# --- Bulk operations ---

@router.post("/bulk/status")
async def bulk_update_status(
    data: BulkStatusRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await bulk_payment_service.bulk_update_status(db, data, current_user, info)
    await db.commit()
    return success_response(result, "Bulk status update processed")


@router.post("/bulk/refund")
async def bulk_refund(
    data: BulkRefundRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await bulk_payment_service.bulk_refund(db, data, current_user, info)
    await db.commit()
    return success_response(result, "Bulk refund processed")


@router.post("/bulk/cancel")
async def bulk_cancel(
    data: BulkIdsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await bulk_payment_service.bulk_cancel(db, data.payment_ids, data.notes, current_user, info)
    await db.commit()
    return success_response(result, "Bulk cancel processed")


@router.post("/bulk/mark-failed")
async def bulk_mark_failed(
    data: BulkIdsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await bulk_payment_service.bulk_mark_failed(db, data.payment_ids, data.notes, current_user, info)
    await db.commit()
    return success_response(result, "Bulk mark-failed processed")


@router.post("/bulk/validate")
async def bulk_validate(
    data: BulkValidateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    """Dry run; nothing is written."""
    return success_response(await bulk_payment_service.validate(db, data))


@router.post("/bulk/preview")
async def bulk_preview(
    data: BulkValidateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    return success_response(await bulk_payment_service.preview(db, data))


@router.get("/{payment_id}/invoice", response_class=HTMLResponse)
async def get_payment_invoice(
    payment_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> HTMLResponse:
    filename, document = await admin_payment_service.render_invoice(db, payment_id)
    return HTMLResponse(
        content=document,
        headers={"Content-Disposition": f"inline; filename={filename}"},
    )
