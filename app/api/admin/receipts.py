"""Admin Receipt Router. Receipt review, verification and regeneration.

Permission: ADMIN+
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, page_params, require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.receipt import BulkVerifyRequest, ReceiptCreate, ReceiptRegenerateRequest, ReceiptVerifyRequest
from app.services.receipt_service import receipt_service

router: APIRouter = APIRouter()


@router.get("")
async def list_receipts(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    status: str | None = None,
    receipt_type: Annotated[str | None, Query(alias="type")] = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    verified: bool | None = None,
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
) -> dict:
    page, limit = paging
    result = await receipt_service.list_receipts(
        db, page, limit,
        user_id=user_id,
        status=status.upper() if status else None,
        receipt_type=receipt_type.upper() if receipt_type else None,
        is_verified=verified,
        date_from=date_from,
        date_to=date_to,
    )
    return success_response(result)


@router.get("/stats")
async def get_receipt_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    return success_response(await receipt_service.get_stats(db))


@router.post("", status_code=201)
async def create_receipt(
    data: ReceiptCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    """Generate the receipt of a payment; an existing one is returned as is."""
    result = await receipt_service.create_receipt(db, data)
    await db.commit()
    return success_response(result, "Receipt generated")


@router.post("/bulk-verify")
async def bulk_verify_receipts(
    data: BulkVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await receipt_service.bulk_verify(db, data.receipt_ids, data.notes, current_user, info)
    await db.commit()
    return success_response(result, "Bulk verification processed")


@router.get("/{receipt_id}")
async def get_receipt(
    receipt_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    return success_response(await receipt_service.get_receipt(db, receipt_id, current_user))


@router.patch("/{receipt_id}/verify")
async def verify_receipt(
    receipt_id: UUID,
    data: ReceiptVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    """Mark VERIFIED or REJECTED."""
    result = await receipt_service.verify_receipt(db, receipt_id, data.status, data.notes, current_user, info)
    await db.commit()
    return success_response(result, "Receipt verification updated")


@router.post("/{receipt_id}/regenerate")
async def regenerate_receipt(
    receipt_id: UUID,
    data: ReceiptRegenerateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await receipt_service.regenerate(db, receipt_id, data.reason, current_user, info)
    await db.commit()
    return success_response(result, "Receipt regenerated")
