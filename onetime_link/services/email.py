"""Composing and delivering verification emails."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Protocol

from onetime_link.core.config import Settings, settings

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send(self, to: str, subject: str, body: str, *, html_body: str | None = None) -> bool: ...


def build_verification_email(name: str, link: str, expire_days: int) -> tuple[str, str, str]:
    subject = "Verify your email address"
    body = (
        f"Hello {name},\n\n"
        "Please open the link below to verify your email address:\n\n"
        f"{link}\n\n"
        f"This link can be used once and expires in {expire_days} days.\n\n"
        "If you did not request this, you can ignore this email."
    )
    safe_link = escape(link, quote=True)
    html_body = (
        "<h1>Verify your email address</h1>"
        f"<p>Hello {escape(name)},</p>"
        "<p>Please click the link below to verify your email address:</p>"
        f'<p><a href="{safe_link}">Verify Email</a></p>'
        f"<p>This link will expire in {expire_days} days.</p>"
    )
    return subject, body, html_body


class LoggingEmailSender:
    """Logs outgoing mail instead of delivering it."""

    def __init__(self) -> None:
        self.outbox: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str, *, html_body: str | None = None) -> bool:
        self.outbox.append((to, subject, body))
        logger.info("Email would be sent to %s with subject '%s'", to, subject)
        return True


class SmtpEmailSender:
    def __init__(self, config: Settings = settings) -> None:
        self.config = config

    def send(self, to: str, subject: str, body: str, *, html_body: str | None = None) -> bool:
        message = EmailMessage()
        message["From"] = self.config.SMTP_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=30) as server:
                server.ehlo()
                if self.config.SMTP_TLS:
                    server.starttls()
                    server.ehlo()
                if self.config.SMTP_USER:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.send_message(message)
            logger.info("Email sent: %s", to)
            return True
        except (smtplib.SMTPException, OSError):
            logger.exception("Email send failed: %s", to)
            return False


def build_email_sender(config: Settings = settings) -> EmailSender:
    if config.smtp_ready:
        return SmtpEmailSender(config)
    logger.info("SMTP not configured; verification emails will only be logged")
    return LoggingEmailSender()
