from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict

from loguru import logger
from sqlalchemy.orm import Session

from src.models.charge import Charge
from src.models.notification_log import NotificationChannel
from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.throttle import recently_notified


def notify_charge(
    session: Session,
    dispatcher: NotificationDispatcher,
    charge: Charge,
    channel: NotificationChannel,
    format_message: Callable[[Charge], Dict[str, str]],
    throttle_hours: float,
    now: datetime,
) -> bool:
    """Throttle check, then send and log one charge notification.

    Returns:
        True only when an e-mail actually went out.
    """
    if recently_notified(session, charge.user_id, charge.id, channel, throttle_hours, now):
        logger.debug(f"Charge {charge.id}: {channel.value} already sent within {throttle_hours}h")
        return False

    message = format_message(charge)
    return dispatcher.send_email_notification(
        user_id=charge.user_id,
        subject=message["subject"],
        text=message["text"],
        channel=channel,
        related_charge_id=charge.id,
        now=now,
    )
