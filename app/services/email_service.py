"""Email Service. Transactional email templates rendered and sent over SMTP.

Each template renders a subject, an HTML body and a plain-text body from a
context dict. Delivery goes through ``app.utils.email.send_email``, which
retries transient SMTP failures. Callers treat delivery failures as non-fatal.
"""

import logging
from html import escape
from typing import Any, Callable

from app.config import settings
from app.models.contact import ContactForm
from app.models.payment import Payment
from app.models.reservation import Reservation
from app.models.user import User
from app.utils import email as email_utils

logger = logging.getLogger(__name__)

# Template name -> subject format
EMAIL_SUBJECTS: dict[str, str] = {
    "reservation_confirmation": "Confirmación de Reserva - {confirmation_code}",
    "reservation_cancellation": "Cancelación de Reserva - {confirmation_code}",
    "payment_confirmation": "Confirmación de Pago - Reserva {confirmation_code}",
    "payment_failed": "Error en el Pago - Reserva {confirmation_code}",
    "checkin_reminder": "Recordatorio de Check-in - {venue_name}",
    "checkout_reminder": "Recordatorio de Check-out - {venue_name}",
    "welcome": "Bienvenido a ReservApp",
    "password_reset": "Restablecimiento de Contraseña - ReservApp",
    "contact_notification": "[ReservApp] Nuevo contacto: {subject}",
    "contact_confirmation": "Confirmación de recepción - ReservApp",
}


def _layout(title: str, body_html: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #1f2937;\">"
        f"<h2 style=\"color: #8B5CF6;\">{escape(title)}</h2>"
        f"{body_html}"
        f"<p style=\"color: #6b7280; font-size: 12px;\">{escape(settings.SMTP_FROM_NAME)}</p>"
        "</body></html>"
    )


def _rows(pairs: list[tuple[str, Any]]) -> tuple[str, str]:
    """Render label/value pairs as an HTML table and as text lines."""
    html_rows = "".join(
        f"<tr><td><strong>{escape(label)}</strong></td><td>{escape(str(value))}</td></tr>"
        for label, value in pairs
        if value is not None
    )
    text_rows = "\n".join(f"{label}: {value}" for label, value in pairs if value is not None)
    return f"<table cellpadding=\"4\">{html_rows}</table>", text_rows


def _reservation_pairs(ctx: dict[str, Any]) -> list[tuple[str, Any]]:
    return [
        ("Código", ctx.get("confirmation_code")),
        ("Lugar", ctx.get("venue_name")),
        ("Servicio", ctx.get("service_name")),
        ("Check-in", ctx.get("check_in")),
        ("Check-out", ctx.get("check_out")),
        ("Huéspedes", ctx.get("guests")),
        ("Total", ctx.get("total")),
    ]


def _render_reservation_confirmation(ctx: dict[str, Any]) -> tuple[str, str]:
    table, text = _rows(_reservation_pairs(ctx))
    intro = f"Hola {ctx.get('guest_name', '')}, tu reserva ha sido registrada."
    return _layout("Reserva confirmada", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


def _render_reservation_cancellation(ctx: dict[str, Any]) -> tuple[str, str]:
    pairs = _reservation_pairs(ctx) + [
        ("Motivo", ctx.get("reason")),
        ("Reembolso", ctx.get("refund_amount")),
    ]
    table, text = _rows(pairs)
    intro = f"Hola {ctx.get('guest_name', '')}, tu reserva ha sido cancelada."
    return _layout("Reserva cancelada", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


def _render_payment_confirmation(ctx: dict[str, Any]) -> tuple[str, str]:
    table, text = _rows([
        ("Reserva", ctx.get("confirmation_code")),
        ("Monto", ctx.get("amount")),
        ("Método", ctx.get("method")),
        ("Referencia", ctx.get("payment_id")),
    ])
    intro = f"Hola {ctx.get('guest_name', '')}, recibimos tu pago."
    return _layout("Pago recibido", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


def _render_payment_failed(ctx: dict[str, Any]) -> tuple[str, str]:
    table, text = _rows([
        ("Reserva", ctx.get("confirmation_code")),
        ("Monto", ctx.get("amount")),
        ("Motivo", ctx.get("failure_reason")),
    ])
    intro = f"Hola {ctx.get('guest_name', '')}, no pudimos procesar tu pago."
    return _layout("Error en el pago", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


def _render_checkin_reminder(ctx: dict[str, Any]) -> tuple[str, str]:
    table, text = _rows(_reservation_pairs(ctx))
    intro = f"Hola {ctx.get('guest_name', '')}, te esperamos pronto."
    return _layout("Recordatorio de check-in", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


def _render_checkout_reminder(ctx: dict[str, Any]) -> tuple[str, str]:
    table, text = _rows(_reservation_pairs(ctx))
    intro = f"Hola {ctx.get('guest_name', '')}, tu estancia está por terminar."
    return _layout("Recordatorio de check-out", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


def _render_welcome(ctx: dict[str, Any]) -> tuple[str, str]:
    intro = f"Hola {ctx.get('guest_name', '')}, gracias por registrarte en ReservApp."
    link = ctx.get("login_url", settings.FRONTEND_URL)
    html = f"<p>{escape(intro)}</p><p><a href=\"{escape(link)}\">Comenzar</a></p>"
    return _layout("Bienvenido", html), f"{intro}\n\n{link}"


def _render_password_reset(ctx: dict[str, Any]) -> tuple[str, str]:
    link = ctx.get("reset_url", settings.FRONTEND_URL)
    intro = "Recibimos una solicitud para restablecer tu contraseña."
    html = f"<p>{escape(intro)}</p><p><a href=\"{escape(link)}\">Restablecer contraseña</a></p>"
    return _layout("Restablecer contraseña", html), f"{intro}\n\n{link}"


def _render_contact_notification(ctx: dict[str, Any]) -> tuple[str, str]:
    table, text = _rows([
        ("Nombre", ctx.get("name")),
        ("Email", ctx.get("email")),
        ("Teléfono", ctx.get("phone")),
        ("Asunto", ctx.get("subject")),
        ("Formulario", ctx.get("form_id")),
    ])
    message: str = ctx.get("message") or ""
    body = escape(message).replace("\n", "<br />")
    html = f"<p>Nuevo formulario de contacto recibido.</p>{table}<hr /><p>{body}</p>"
    return _layout("Nuevo contacto", html), f"Nuevo formulario de contacto recibido.\n\n{text}\n\n{message}"


def _render_contact_confirmation(ctx: dict[str, Any]) -> tuple[str, str]:
    intro = (
        f"Hola {ctx.get('name', '')}, gracias por contactarnos. "
        "Hemos recibido tu mensaje y te responderemos lo antes posible."
    )
    table, text = _rows([("Asunto", ctx.get("subject")), ("Mensaje", ctx.get("message"))])
    return _layout("Hemos recibido tu mensaje", f"<p>{escape(intro)}</p>{table}"), f"{intro}\n\n{text}"


_RENDERERS: dict[str, Callable[[dict[str, Any]], tuple[str, str]]] = {
    "reservation_confirmation": _render_reservation_confirmation,
    "reservation_cancellation": _render_reservation_cancellation,
    "payment_confirmation": _render_payment_confirmation,
    "payment_failed": _render_payment_failed,
    "checkin_reminder": _render_checkin_reminder,
    "checkout_reminder": _render_checkout_reminder,
    "welcome": _render_welcome,
    "password_reset": _render_password_reset,
    "contact_notification": _render_contact_notification,
    "contact_confirmation": _render_contact_confirmation,
}


class _Missing(dict):
    """format_map helper that leaves unknown placeholders empty."""

    def __missing__(self, key: str) -> str:
        return ""


def render_template(template: str, context: dict[str, Any]) -> tuple[str, str, str]:
    """Render ``template`` into (subject, html, text).

    Raises:
        KeyError: Unknown template name
    """
    renderer = _RENDERERS[template]
    subject: str = EMAIL_SUBJECTS[template].format_map(_Missing(context))
    html, text = renderer(context)
    return subject, html, text


def _money(amount: Any, currency: str) -> str:
    return f"${float(amount):,.2f} {currency}"


def reservation_context(reservation: Reservation) -> dict[str, Any]:
    """Template context for a reservation with user, service and venue loaded."""
    return {
        "guest_name": reservation.user.full_name if reservation.user else "",
        "confirmation_code": reservation.confirmation_code,
        "venue_name": reservation.venue.name if reservation.venue else None,
        "service_name": reservation.service.name if reservation.service else None,
        "check_in": reservation.check_in.strftime("%Y-%m-%d %H:%M"),
        "check_out": reservation.check_out.strftime("%Y-%m-%d %H:%M"),
        "guests": reservation.guests,
        "total": _money(reservation.total_amount, reservation.currency),
    }


def contact_context(form: ContactForm) -> dict[str, Any]:
    return {
        "form_id": str(form.id),
        "name": form.name,
        "email": form.email,
        "phone": form.phone,
        "subject": form.subject,
        "message": form.message,
    }


class EmailService:
    """Renders templates and delivers them through SMTP."""

    async def send_template(
        self, to: str, template: str, context: dict[str, Any], reply_to: str | None = None
    ) -> None:
        subject, html, text = render_template(template, context)
        if not settings.SMTP_USER:
            logger.info("SMTP not configured, skipping %s email to %s", template, to)
            return
        await email_utils.send_email(to, subject, html, text, reply_to)
        logger.info("Sent %s email to %s", template, to)

    async def send_welcome(self, user: User) -> None:
        await self.send_template(user.email, "welcome", {"guest_name": user.first_name})

    async def send_reservation_confirmation(self, reservation: Reservation) -> None:
        await self.send_template(
            reservation.user.email, "reservation_confirmation", reservation_context(reservation)
        )

    async def send_reservation_cancellation(self, reservation: Reservation) -> None:
        context = reservation_context(reservation)
        context["reason"] = reservation.cancel_reason
        if reservation.refund_amount is not None:
            context["refund_amount"] = _money(reservation.refund_amount, reservation.currency)
        await self.send_template(reservation.user.email, "reservation_cancellation", context)

    async def send_checkin_reminder(self, reservation: Reservation) -> None:
        await self.send_template(
            reservation.user.email, "checkin_reminder", reservation_context(reservation)
        )

    async def send_checkout_reminder(self, reservation: Reservation) -> None:
        await self.send_template(
            reservation.user.email, "checkout_reminder", reservation_context(reservation)
        )

    async def send_payment_confirmation(self, payment: Payment, reservation: Reservation) -> None:
        context = reservation_context(reservation)
        context.update({
            "amount": _money(payment.amount, payment.currency),
            "method": payment.method,
            "payment_id": payment.stripe_payment_id or str(payment.id),
        })
        await self.send_template(reservation.user.email, "payment_confirmation", context)

    async def send_payment_failed(self, payment: Payment, reservation: Reservation) -> None:
        context = reservation_context(reservation)
        context.update({
            "amount": _money(payment.amount, payment.currency),
            "failure_reason": payment.failure_reason,
        })
        await self.send_template(reservation.user.email, "payment_failed", context)

    async def send_contact_notification(self, form: ContactForm) -> None:
        """New contact form to the support inbox; replies go to the sender."""
        await self.send_template(
            settings.CONTACT_TARGET_EMAIL or settings.SMTP_FROM_EMAIL,
            "contact_notification",
            contact_context(form),
            reply_to=form.email,
        )

    async def send_contact_confirmation(self, form: ContactForm) -> None:
        await self.send_template(form.email, "contact_confirmation", contact_context(form))


# Singleton instance
email_service: EmailService = EmailService()
