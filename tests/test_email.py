"""Email tests. Template rendering, SMTP retry and reminder delivery."""

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest
from httpx import AsyncClient
from tenacity import wait_none

from app.config import settings
from app.models.reservation import ReservationStatus
from app.services.email_service import EMAIL_SUBJECTS, email_service, render_template
from app.utils import email as email_utils
from tests.conftest import auth_header, create_reservation, make_token

RESERVATIONS = "/api/reservations"

CONTEXT = {
    "guest_name": "Gina Guest",
    "confirmation_code": "RSV-MAIL0001",
    "venue_name": "Hotel Playa",
    "service_name": "Ocean View Suite",
    "total": "$2,000.00 MXN",
    "amount": "$2,000.00 MXN",
}


class TestRenderTemplate:

    @pytest.mark.parametrize("template", sorted(EMAIL_SUBJECTS))
    def test_every_template_renders(self, template):
        subject, html, text = render_template(template, CONTEXT)
        assert subject
        assert html.startswith("<!DOCTYPE html>")
        assert text

    def test_subject_placeholders(self):
        subject, _, _ = render_template("reservation_confirmation", CONTEXT)
        assert subject == "Confirmación de Reserva - RSV-MAIL0001"
        subject, _, _ = render_template("checkin_reminder", CONTEXT)
        assert subject == "Recordatorio de Check-in - Hotel Playa"

    def test_missing_placeholder_left_empty(self):
        subject, _, _ = render_template("payment_failed", {})
        assert subject == "Error en el Pago - Reserva "

    def test_html_is_escaped(self):
        _, html, text = render_template("reservation_confirmation", {"guest_name": "<b>Eve</b>"})
        assert "&lt;b&gt;Eve&lt;/b&gt;" in html
        assert "<b>Eve</b>" in text

    def test_none_rows_skipped(self):
        _, _, text = render_template("reservation_cancellation", {**CONTEXT, "reason": None})
        assert "Motivo" not in text

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            render_template("newsletter", CONTEXT)

    def test_password_reset(self):
        subject, html, text = render_template("password_reset", {"reset_url": "https://app.test/reset?t=abc"})
        assert subject == "Restablecimiento de Contraseña - ReservApp"
        assert '<a href="https://app.test/reset?t=abc">' in html
        assert text.endswith("https://app.test/reset?t=abc")


@pytest.fixture
def no_backoff():
    with patch.object(email_utils.deliver.retry, "wait", wait_none()):
        yield


class TestSendEmail:

    def test_build_message(self):
        msg = email_utils.build_message("guest@test.com", "Hola", "<p>Hi</p>", "Hi")
        assert msg["To"] == "guest@test.com"
        assert msg["Subject"] == "Hola"
        assert [part.get_content_type() for part in msg.get_payload()] == ["text/plain", "text/html"]

    async def test_retries_then_succeeds(self, no_backoff):
        send = AsyncMock(side_effect=[aiosmtplib.SMTPException("busy"), None])
        with patch.object(email_utils.aiosmtplib, "send", send):
            await email_utils.send_email("guest@test.com", "Hola", "<p>Hi</p>")
        assert send.await_count == 2

    async def test_gives_up_after_max_attempts(self, no_backoff):
        send = AsyncMock(side_effect=aiosmtplib.SMTPException("down"))
        with patch.object(email_utils.aiosmtplib, "send", send):
            with pytest.raises(aiosmtplib.SMTPException):
                await email_utils.send_email("guest@test.com", "Hola", "<p>Hi</p>")
        assert send.await_count == email_utils.MAX_EMAIL_ATTEMPTS == 3

    async def test_other_errors_not_retried(self, no_backoff):
        send = AsyncMock(side_effect=ValueError("bad address"))
        with patch.object(email_utils.aiosmtplib, "send", send):
            with pytest.raises(ValueError):
                await email_utils.send_email("guest@test.com", "Hola", "<p>Hi</p>")
        assert send.await_count == 1

    async def test_skipped_without_smtp_user(self, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "")
        with patch.object(email_utils, "send_email", AsyncMock()) as send:
            await email_service.send_template("guest@test.com", "welcome", {"guest_name": "Gina"})
        send.assert_not_awaited()

    async def test_sent_with_smtp_user(self, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USER", "mailer")
        with patch.object(email_utils, "send_email", AsyncMock()) as send:
            await email_service.send_template("guest@test.com", "welcome", {"guest_name": "Gina"})
        to, subject = send.await_args.args[:2]
        assert to == "guest@test.com"
        assert subject == "Bienvenido a ReservApp"


class TestReminders:

    async def test_checkin_reminder(self, client: AsyncClient, db, guest, service, admin_token):
        booking = await create_reservation(db, guest, service, status=ReservationStatus.CONFIRMED)
        with patch.object(email_service, "send_checkin_reminder", AsyncMock()) as send:
            res = await client.post(
                f"{RESERVATIONS}/{booking.id}/reminders", json={"type": "checkin"}, headers=auth_header(admin_token)
            )
        assert res.status_code == 200
        assert res.json()["message"] == "Reminder sent"
        assert send.await_args.args[0].id == booking.id

    async def test_checkout_reminder(self, client: AsyncClient, db, guest, service, admin_token):
        booking = await create_reservation(db, guest, service, status=ReservationStatus.CHECKED_IN)
        with patch.object(email_service, "send_checkout_reminder", AsyncMock()) as send:
            res = await client.post(
                f"{RESERVATIONS}/{booking.id}/reminders", json={"type": "checkout"}, headers=auth_header(admin_token)
            )
        assert res.status_code == 200
        send.assert_awaited_once()

    async def test_reminder_must_match_status(self, client: AsyncClient, reservation, admin_token):
        res = await client.post(
            f"{RESERVATIONS}/{reservation.id}/reminders", json={"type": "checkout"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

    async def test_unknown_reminder_type(self, client: AsyncClient, reservation, admin_token):
        res = await client.post(
            f"{RESERVATIONS}/{reservation.id}/reminders", json={"type": "birthday"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 422

    async def test_out_of_scope(self, client: AsyncClient, reservation, other_admin, guest_token):
        url = f"{RESERVATIONS}/{reservation.id}/reminders"
        res = await client.post(url, json={"type": "checkin"}, headers=auth_header(make_token(other_admin)))
        assert res.status_code == 403
        res = await client.post(url, json={"type": "checkin"}, headers=auth_header(guest_token))
        assert res.status_code == 403
