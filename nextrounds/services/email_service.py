"""
Email Service - sends contact-form messages to the support inbox over SMTP.

Without SMTP credentials (local development) the message is logged
instead of sent.
"""
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

SMTP_TIMEOUT_SECONDS = 12


class EmailSendError(Exception):
    """Raised when the SMTP server refuses or cannot be reached."""


def build_contact_message(name: str, email: str, subject: str, message: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"Contact Support: {subject}"
    msg["From"] = settings.smtp_username or settings.support_email
    msg["To"] = settings.support_email
    msg["Reply-To"] = email
    msg.set_content(
        f"New Contact Support Message\n\n"
        f"From: {name}\n"
        f"Email: {email}\n"
        f"Subject: {subject}\n\n"
        f"{message}\n\n"
        f"Sent at: {datetime.now(timezone.utc).isoformat()}"
    )
    return msg


def send_contact_message(name: str, email: str, subject: str, message: str):
    """
    Deliver a contact message to SUPPORT_EMAIL.

    Raises:
        EmailSendError: SMTP failure
    """
    msg = build_contact_message(name, email, subject, message)

    if not settings.smtp_configured:
        logger.info(f"SMTP not configured; contact message from {email}: {subject}")
        return

    try:
        if settings.smtp_port == 465:
            with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as server:
                server.login(settings.smtp_username, settings.smtp_password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                server.login(settings.smtp_username, settings.smtp_password)
                server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.exception(f"SMTP send to {settings.support_email} failed")
        raise EmailSendError(str(e)) from e

    logger.info(f"Contact message from {email} sent to {settings.support_email}")
