"""Contact Router. Public contact form."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.common import success_response
from app.schemas.contact import ContactCreate
from app.services.contact_service import contact_service

router: APIRouter = APIRouter()


@router.post("", status_code=201)
async def submit_contact_form(
    data: ContactCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Store the message, then email the support inbox and the sender."""
    form = await contact_service.submit(db, data)
    await db.commit()
    await contact_service.send_emails(form)
    return success_response({"id": str(form.id)}, "Your message has been sent")
