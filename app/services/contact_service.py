"""Contact Service. Public contact form intake and back-office follow-up.

A submission is stored first; the support notification and the sender's
confirmation email are sent afterwards and their failures are only logged.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.contact import ContactForm, ContactStatus
from app.repositories.contact_repository import contact_repository
from app.schemas.common import PaginatedData
from app.schemas.contact import ContactCreate, ContactFormResponse, ContactFormUpdate
from app.services.email_service import email_service
from app.utils.exceptions import BadRequestError, NotFoundError
from app.utils.pagination import build_page

logger = logging.getLogger(__name__)


def contact_to_response(form: ContactForm) -> ContactFormResponse:
    return ContactFormResponse(
        id=str(form.id),
        name=form.name,
        email=form.email,
        phone=form.phone,
        subject=form.subject,
        message=form.message,
        status=form.status,
        notes=form.notes,
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


class ContactService:
    """Contact form business logic."""

    async def submit(self, db: AsyncSession, data: ContactCreate) -> ContactForm:
        """Store a submission in PENDING status.

        Raises:
            BadRequestError: A required field is blank after trimming
        """
        name: str = data.name.strip()
        subject: str = data.subject.strip()
        message: str = data.message.strip()
        phone: str | None = data.phone.strip() if data.phone else None
        if not name or not subject or not message:
            raise BadRequestError("All required fields must be completed")

        form: ContactForm = await contact_repository.create(
            db,
            {
                "name": name,
                "email": data.email.strip().lower(),
                "phone": phone or None,
                "subject": subject,
                "message": message,
                "status": ContactStatus.PENDING,
            },
        )
        logger.info("Contact form %s received from %s", form.id, form.email)
        return form

    async def send_emails(self, form: ContactForm) -> None:
        """Support notification, then sender confirmation. Failures are logged."""
        for send in (email_service.send_contact_notification, email_service.send_contact_confirmation):
            try:
                await send(form)
            except Exception:
                logger.exception("Failed to send %s for contact form %s", send.__name__, form.id)

    async def list_forms(
        self, db: AsyncSession, page: int, limit: int, status: str | None = None
    ) -> PaginatedData:
        query = contact_repository.build_list_query(status)
        items, total = await contact_repository.get_paginated(db, query, page, limit)
        return build_page([contact_to_response(f) for f in items], total, page, limit)

    async def update_form(
        self, db: AsyncSession, form_id: UUID, data: ContactFormUpdate
    ) -> ContactFormResponse:
        """Set the status and, when sent, the internal notes.

        Raises:
            NotFoundError: Unknown contact form
        """
        form: ContactForm | None = await contact_repository.get_by_id(db, form_id)
        if form is None:
            raise NotFoundError("Contact form not found")
        form = await contact_repository.update(db, form, data.model_dump(exclude_unset=True))
        await db.refresh(form)
        return contact_to_response(form)


# Singleton instance
contact_service: ContactService = ContactService()
