"""
auth/notifier.py -- Delivery of one-time codes to the account owner.

The flows depend on the Notifier protocol only. Two implementations:

  SmtpNotifier -- sends plain-text mail through an SMTP relay (STARTTLS or
      plain, with optional login). Used when SMTP_ENABLED=true.
  LogNotifier  -- writes the message to the log instead of sending it. The
      default for development, where no relay is configured.

Message bodies are built by verification_message() / password_reset_message()
so both notifiers render identical text.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

VERIFICATION_SUBJECT = "Please verify your email"
PASSWORD_RESET_SUBJECT = "Reset your password"
_SMTP_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class Message:
    to: str
    subject: str
    body: str


class Notifier(Protocol):
    def send(self, message: Message) -> None: ...


def verification_message(user: User) -> Message:
    return Message(
        to=user.email,
        subject=VERIFICATION_SUBJECT,
        body=f"Verification code: {user.verification_code}. ID: {user.id}",
    )


def password_reset_message(user: User, reset_code: str) -> Message:
    return Message(
        to=user.email,
        subject=PASSWORD_RESET_SUBJECT,
        body=f"Password reset code: {reset_code}. ID: {user.id}",
    )


class LogNotifier:
    """Notifier that logs instead of sending. Never raises."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("sessiongate.notifier")

    def send(self, message: Message) -> None:
        self._logger.warning("SMTP disabled, message to %s not sent: %s | %s", message.to, message.subject, message.body)


class SmtpNotifier:
    """Notifier backed by smtplib.

    Raises smtplib.SMTPException / OSError on delivery failure; the calling
    flow decides whether that failure matters.
    """

    def __init__(self, settings: Settings, logger: logging.Logger | None = None) -> None:
        self._settings = settings
        self._logger = logger or logging.getLogger("sessiongate.notifier")

    def send(self, message: Message) -> None:
        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = self._settings.mail_from
        msg["To"] = message.to
        msg.set_content(message.body)

        password = self._settings.smtp_password.get_secret_value() if self._settings.smtp_password else ""
        with smtplib.SMTP(self._settings.smtp_host, self._settings.smtp_port, timeout=_SMTP_TIMEOUT_SECONDS) as server:
            if self._settings.smtp_starttls:
                server.starttls(context=ssl.create_default_context())
            if self._settings.smtp_user:
                server.login(self._settings.smtp_user, password)
            server.send_message(msg)
        self._logger.info("Email sent to %s", message.to)


def build_notifier(settings: Settings, logger: logging.Logger | None = None) -> Notifier:
    """Return SmtpNotifier when SMTP is enabled and configured, else LogNotifier."""
    if settings.smtp_enabled and settings.smtp_host:
        return SmtpNotifier(settings, logger)
    if settings.smtp_enabled:
        (logger or logging.getLogger("sessiongate.notifier")).error("SMTP_ENABLED is set but SMTP_HOST is empty")
    return LogNotifier(logger)
