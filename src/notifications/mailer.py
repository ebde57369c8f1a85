from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from loguru import logger

from src.config import get_settings

SEND_MAIL_TIMEOUT = 10  # seconds


class EmailSender:
    """Send e-mail through an SMTP relay (STARTTLS)."""

    def __init__(self):
        settings = get_settings()
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.from_email = settings.email_from
        self.from_name = settings.email_from_name

    @classmethod
    def is_configured(cls) -> bool:
        """Check if an SMTP host and sender address are set."""
        settings = get_settings()
        return bool(settings.smtp_host and settings.email_from)

    def build_message(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = (
            formataddr((self.from_name, self.from_email)) if self.from_name else self.from_email
        )
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        """Send one message.

        Returns:
            True if the relay accepted the message, False otherwise.
        """
        if not self.is_configured():
            logger.warning("SMTP is not configured, cannot send e-mail")
            return False

        msg = self.build_message(to, subject, text, html)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=SEND_MAIL_TIMEOUT) as smtp:
                smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)

            logger.info(f"E-mail sent to {to}: {subject}")
            return True
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error sending to {to}: {e}")
            return False
        except OSError as e:
            logger.error(f"SMTP connection failed: {e}")
            return False
