from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models.base import utcnow
from src.models.notification_log import NotificationChannel, NotificationLog

DEFAULT_THROTTLE_HOURS = 24


def recently_notified(
    session: Session,
    user_id: int,
    charge_id: Optional[int],
    channel: NotificationChannel,
    window_hours: float = DEFAULT_THROTTLE_HOURS,
    now: Optional[datetime] = None,
) -> bool:
    """Check whether this (user, charge, channel) was notified within the window.

    Failed attempts count too. This is a plain read: the caller writes the log
    record afterwards, so two concurrent runs can both pass the check.
    """
    now = now or utcnow()
    since = now - timedelta(hours=window_hours)
    stmt = (
        select(NotificationLog.id)
        .where(
            NotificationLog.user_id == user_id,
            NotificationLog.related_charge_id == charge_id,
            NotificationLog.channel == channel,
            NotificationLog.sent_at >= since,
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None
