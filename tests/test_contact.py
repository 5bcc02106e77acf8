"""Contact form tests. Public submission, emails and back-office follow-up."""

from unittest.mock import AsyncMock, patch

import aiosmtplib
from httpx import AsyncClient
from sqlalchemy import select

from app.config import settings
from app.models.contact import ContactForm, ContactStatus
from app.utils import email as email_utils
from tests.conftest import auth_header

CONTACT = "/api/contact"
ADMIN_CONTACT = "/api/admin/contact-forms"

PAYLOAD = {
    "name": "  Laura Lopez ",
    "email": " Laura@Example.com ",
    "subject": "Grupo de 20 personas",
    "message": "Hola,\nQueremos reservar para un evento.",
}


async def _add_form(db, subject: str, status: str = ContactStatus.PENDING) -> ContactForm:
    form = ContactForm(name="Sam", email="sam@test.com", subject=subject, message="Hi", status=status)
    db.add(form)
    await db.flush()
    return form


class TestSubmitContactForm:

    async def test_stores_trimmed_submission(self, client: AsyncClient, db):
        res = await client.post(CONTACT, json={**PAYLOAD, "phone": "  "})
        assert res.status_code == 201
        form_id = res.json()["data"]["id"]

        form = (await db.execute(select(ContactForm))).scalar_one()
        assert str(form.id) == form_id
        assert form.name == "Laura Lopez"
        assert form.email == "laura@example.com"
        assert form.phone is None
        assert form.status == ContactStatus.PENDING

    async def test_emails_support_and_sender(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "mailer")
        monkeypatch.setattr(settings, "CONTACT_TARGET_EMAIL", "support@reservapp.com")
        with patch.object(email_utils, "send_email", AsyncMock()) as send:
            res = await client.post(CONTACT, json={**PAYLOAD, "phone": "+52 998 000 0000"})
        assert res.status_code == 201
        assert send.await_count == 2

        to, subject, html, text, reply_to = send.await_args_list[0].args
        assert to == "support@reservapp.com"
        assert subject == "[ReservApp] Nuevo contacto: Grupo de 20 personas"
        assert reply_to == "laura@example.com"
        assert "+52 998 000 0000" in text
        assert "Hola,<br />Queremos" in html

        to, subject, _, _, reply_to = send.await_args_list[1].args
        assert to == "laura@example.com"
        assert subject == "Confirmación de recepción - ReservApp"
        assert reply_to is None

    async def test_target_falls_back_to_sender_address(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "mailer")
        monkeypatch.setattr(settings, "CONTACT_TARGET_EMAIL", "")
        with patch.object(email_utils, "send_email", AsyncMock()) as send:
            await client.post(CONTACT, json=PAYLOAD)
        assert send.await_args_list[0].args[0] == settings.SMTP_FROM_EMAIL

    async def test_email_failure_keeps_submission(self, client: AsyncClient, db, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "mailer")
        failing = AsyncMock(side_effect=aiosmtplib.SMTPException("down"))
        with patch.object(email_utils, "send_email", failing):
            res = await client.post(CONTACT, json=PAYLOAD)
        assert res.status_code == 201
        assert failing.await_count == 2
        assert len((await db.execute(select(ContactForm))).scalars().all()) == 1

    async def test_validation(self, client: AsyncClient):
        res = await client.post(CONTACT, json={**PAYLOAD, "email": "not-an-email"})
        assert res.status_code == 422
        res = await client.post(CONTACT, json={"name": "X", "email": "x@test.com"})
        assert res.status_code == 422

    async def test_blank_after_trim(self, client: AsyncClient):
        res = await client.post(CONTACT, json={**PAYLOAD, "subject": "   "})
        assert res.status_code == 400
        assert res.json()["error"] == "BAD_REQUEST"


class TestAdminContactForms:

    async def test_list_newest_first_with_status_filter(self, client: AsyncClient, db, admin_token):
        await _add_form(db, "First")
        await _add_form(db, "Second", ContactStatus.RESOLVED)
        await _add_form(db, "Third")

        res = await client.get(ADMIN_CONTACT, headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["pagination"]["total"] == 3
        assert {f["subject"] for f in data["items"]} == {"First", "Second", "Third"}

        res = await client.get(ADMIN_CONTACT, params={"status": "PENDING"}, headers=auth_header(admin_token))
        assert {f["subject"] for f in res.json()["data"]["items"]} == {"First", "Third"}

    async def test_invalid_status_filter(self, client: AsyncClient, admin_token):
        res = await client.get(ADMIN_CONTACT, params={"status": "LOST"}, headers=auth_header(admin_token))
        assert res.status_code == 422

    async def test_manager_cannot_list(self, client: AsyncClient, manager_token):
        res = await client.get(ADMIN_CONTACT, headers=auth_header(manager_token))
        assert res.status_code == 403

    async def test_update_status_and_notes(self, client: AsyncClient, db, admin_token):
        form = await _add_form(db, "Question")
        url = f"{ADMIN_CONTACT}/{form.id}"

        res = await client.patch(url, json={"status": "IN_PROGRESS", "notes": "Called back"}, headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["status"] == "IN_PROGRESS"
        assert data["notes"] == "Called back"

        res = await client.patch(url, json={"status": "RESOLVED"}, headers=auth_header(admin_token))
        data = res.json()["data"]
        assert data["status"] == "RESOLVED"
        assert data["notes"] == "Called back"

    async def test_update_requires_known_status(self, client: AsyncClient, db, admin_token):
        form = await _add_form(db, "Question")
        res = await client.patch(f"{ADMIN_CONTACT}/{form.id}", json={"status": "DONE"}, headers=auth_header(admin_token))
        assert res.status_code == 422
        res = await client.patch(f"{ADMIN_CONTACT}/{form.id}", json={"notes": "x"}, headers=auth_header(admin_token))
        assert res.status_code == 422

    async def test_update_unknown_form(self, client: AsyncClient, admin_token):
        res = await client.patch(
            f"{ADMIN_CONTACT}/00000000-0000-0000-0000-000000000000",
            json={"status": "ARCHIVED"}, headers=auth_header(admin_token),
        )
        assert res.status_code == 404
