"""Admin Contact Form Router. Follow-up of public contact submissions.

Permission: ADMIN+
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import page_params, require_admin
from app.database import get_db
from app.models.contact import ContactStatus
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.contact import ContactFormUpdate
from app.services.contact_service import contact_service

router: APIRouter = APIRouter()


@router.get("")
async def list_contact_forms(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    status: ContactStatus | None = None,
) -> dict:
    """Newest first."""
    page, limit = paging
    return success_response(await contact_service.list_forms(db, page, limit, status))


@router.patch("/{form_id}")
async def update_contact_form(
    form_id: UUID,
    data: ContactFormUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await contact_service.update_form(db, form_id, data)
    await db.commit()
    return success_response(result, "Contact form updated")
