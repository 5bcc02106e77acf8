"""Contact Form Repository. Back-office listing of contact submissions."""

from sqlalchemy import Select, select

from app.models.contact import ContactForm
from app.repositories.base import BaseRepository


class ContactRepository(BaseRepository[ContactForm]):
    """Repository handling database queries for the contact_forms table."""

    def __init__(self) -> None:
        super().__init__(ContactForm)

    def build_list_query(self, status: str | None = None) -> Select:
        """Contact forms, newest first, optionally filtered by status."""
        query: Select = select(ContactForm)
        if status:
            query = query.where(ContactForm.status == status)
        return query.order_by(ContactForm.created_at.desc())


# Singleton instance
contact_repository: ContactRepository = ContactRepository()
