from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.orm import Session

from src.config import get_settings
from src.models.base import utcnow
from src.models.notification_log import (
    NotificationChannel,
    NotificationLog,
    NotificationStatus,
    NotificationType,
)
from src.models.user import User
from src.notifications.formatter import render_html
from src.notifications.mailer import EmailSender


class NotificationDispatcher:
    """Sends customer e-mails and logs every attempt, successful or not."""

    def __init__(self, session: Session, sender: Optional[EmailSender] = None):
        self.session = session
        self.settings = get_settings()
        self.sender = sender or EmailSender()

    def log_notification(
        self,
        user_id: int,
        channel: NotificationChannel,
        message: str,
        related_charge_id: Optional[int] = None,
        status: NotificationStatus = NotificationStatus.sent,
        metadata: Optional[Dict[str, Any]] = None,
        sent_at: Optional[datetime] = None,
    ) -> NotificationLog:
        """Record a notification attempt."""
        log = NotificationLog(
            user_id=user_id,
            notification_type=NotificationType.email,
            channel=channel,
            message=message,
            related_charge_id=related_charge_id,
            status=status,
            meta=metadata,
            sent_at=sent_at or utcnow(),
        )
        self.session.add(log)
        self.session.commit()
        return log

    def send_email_notification(
        self,
        user_id: int,
        subject: str,
        text: str,
        channel: NotificationChannel,
        related_charge_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Send one e-mail to a user and log the outcome.

        The log record is written whether delivery succeeds or fails, so the
        throttle window applies to failed attempts as well.

        Args:
            user_id: Recipient user id.
            subject: Mail subject.
            text: Plain-text body; an HTML version is rendered from it.
            channel: Notification channel (overdue, reminder, ...).
            related_charge_id: Charge this message is about, if any.
            metadata: Extra data stored on the log record.
            now: Timestamp for the log record (defaults to current UTC time).

        Returns:
            True if the mail was sent, False if delivery failed or
            notifications are disabled.

        Raises:
            LookupError: the user does not exist.
        """
        if not self.settings.notification_enabled:
            logger.info("Notifications are disabled, skipping dispatch")
            return False

        user = self.session.get(User, user_id)
        if user is None:
            raise LookupError(f"User {user_id} not found")

        error: Optional[str] = None
        try:
            success = self.sender.send(user.email, subject, text, render_html(text))
            if not success:
                error = "mail transport reported failure"
        except Exception as e:
            success = False
            error = str(e)

        if success:
            self.log_notification(
                user.id, channel, text, related_charge_id,
                status=NotificationStatus.sent, metadata=metadata, sent_at=now,
            )
            logger.info(f"E-mail ({channel.value}) sent to user {user.id}")
        else:
            self.log_notification(
                user.id, channel, text, related_charge_id,
                status=NotificationStatus.failed,
                metadata={**(metadata or {}), "error": error},
                sent_at=now,
            )
            logger.error(
                f"E-mail ({channel.value}) to user {user.id} failed: {error}"
            )
        return success
