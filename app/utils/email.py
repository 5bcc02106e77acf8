"""Email sending utility over SMTP (aiosmtplib).

SMTP settings are managed through the SMTP_* environment variables in config.py.
Transient SMTP failures are retried with exponential backoff (tenacity).
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import settings

logger = logging.getLogger(__name__)

# Retry constants (seconds)
MAX_EMAIL_ATTEMPTS: int = 3
RETRY_MIN_WAIT_SECONDS: int = 1
RETRY_MAX_WAIT_SECONDS: int = 10


def build_message(
    to: str, subject: str, html: str, text: str | None = None, reply_to: str | None = None
) -> MIMEMultipart:
    """Build a multipart/alternative message from the configured sender."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    msg["To"] = to
    if reply_to:
        msg["Reply-To"] = reply_to

    if text:
        msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


@retry(
    retry=retry_if_exception_type(aiosmtplib.SMTPException),
    stop=stop_after_attempt(MAX_EMAIL_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=RETRY_MIN_WAIT_SECONDS, max=RETRY_MAX_WAIT_SECONDS),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def deliver(msg: MIMEMultipart) -> None:
    await aiosmtplib.send(
        msg,
        hostname=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER or None,
        password=settings.SMTP_PASSWORD or None,
        start_tls=True,
    )


async def send_email(
    to: str,
    subject: str,
    html: str,
    text: str | None = None,
    reply_to: str | None = None,
) -> None:
    """Send an email, retrying transient SMTP failures.

    Args:
        to: Recipient email address
        subject: Subject line
        html: HTML body
        text: Plain text body (omitted when None)
        reply_to: Reply-To address (omitted when None)

    Raises:
        aiosmtplib.SMTPException: When every attempt fails
    """
    msg = build_message(to, subject, html, text, reply_to)
    try:
        await deliver(msg)
    except aiosmtplib.SMTPException as exc:
        logger.error("Email to %s failed after %d attempts: %s", to, MAX_EMAIL_ATTEMPTS, exc)
        raise
