"""Contact form Pydantic request/response schema definitions."""

from datetime import datetime

from pydantic import EmailStr, Field

from app.models.contact import ContactStatus
from app.schemas.common import CamelModel


class ContactCreate(CamelModel):
    """Public contact form submission.

    Attributes:
        name / email: Sender; the email is stored trimmed and lower-cased
        phone: Optional contact phone
        subject / message: Request text
    """

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=50)
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=5000)


class ContactFormUpdate(CamelModel):
    """Back-office status change. ``notes`` is left untouched when omitted."""

    status: ContactStatus
    notes: str | None = None


class ContactFormResponse(CamelModel):
    id: str
    name: str
    email: str
    phone: str | None
    subject: str
    message: str
    status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime
