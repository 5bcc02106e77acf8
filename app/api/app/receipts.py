"""Receipt Router. The caller's own receipts and their HTML download."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, page_params
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.services.receipt_service import receipt_service

router: APIRouter = APIRouter()


@router.get("")
async def list_my_receipts(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    status: str | None = None,
    receipt_type: Annotated[str | None, Query(alias="type")] = None,
) -> dict:
    page, limit = paging
    result = await receipt_service.list_receipts(
        db, page, limit,
        user_id=current_user.id,
        status=status.upper() if status else None,
        receipt_type=receipt_type.upper() if receipt_type else None,
    )
    return success_response(result)


@router.get("/{receipt_id}")
async def get_receipt(
    receipt_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return success_response(await receipt_service.get_receipt(db, receipt_id, current_user))


@router.get("/{receipt_id}/download", response_class=HTMLResponse)
async def download_receipt(
    receipt_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> HTMLResponse:
    """Printable HTML receipt served as an attachment."""
    filename, document = await receipt_service.download(db, receipt_id, current_user)
    return HTMLResponse(
        content=document,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
