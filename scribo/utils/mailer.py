from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from scribo.core.config import settings

logger = logging.getLogger("scribo.mailer")


def mail_enabled() -> bool:
    return bool((settings.SMTP_HOST or "").strip())


def send_mail(to: str, subject: str, body: str) -> None:
    """Send a plain-text email through the configured SMTP relay.

    Raises smtplib.SMTPException / OSError on transport failures; callers decide
    how to record them.
    """
    msg = EmailMessage()
    msg["From"] = settings.MAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body or "")

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(msg)
    logger.info("Mail sent to %s", to)
