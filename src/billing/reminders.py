"""Remind owners of pending charges that fall due within the lead window."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.billing.notify import notify_charge
from src.billing.overdue import DEFAULT_CHARGE_BATCH_SIZE
from src.billing.results import DetectionResult
from src.models.base import as_naive_utc
from src.models.charge import Charge, ChargeStatus
from src.models.notification_log import NotificationChannel
from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.formatter import format_reminder_email
from src.notifications.throttle import DEFAULT_THROTTLE_HOURS

DEFAULT_LEAD_HOURS = 48


def detect_due_soon(
    session: Session,
    now: datetime,
    lead_hours: float = DEFAULT_LEAD_HOURS,
    throttle_hours: float = DEFAULT_THROTTLE_HOURS,
    batch_size: int = DEFAULT_CHARGE_BATCH_SIZE,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> DetectionResult:
    """Send reminders for pending charges due in ``[now, now + lead_hours]``.

    Charge status is never touched here.
    """
    now = as_naive_utc(now)
    result = DetectionResult()
    dispatcher = dispatcher or NotificationDispatcher(session)
    until = now + timedelta(hours=lead_hours)

    charge_ids = list(
        session.scalars(
            select(Charge.id)
            .where(
                Charge.status == ChargeStatus.pending,
                Charge.due_date >= now,
                Charge.due_date <= until,
            )
            .order_by(Charge.due_date)
            .limit(batch_size)
        )
    )
    if not charge_ids:
        return result

    for charge_id in charge_ids:
        try:
            charge = session.get(Charge, charge_id, populate_existing=True)
            if charge is None or charge.status != ChargeStatus.pending:
                result.skipped += 1
                continue
            if notify_charge(
                session,
                dispatcher,
                charge,
                NotificationChannel.reminder,
                format_reminder_email,
                throttle_hours,
                now,
            ):
                result.notified += 1
            result.processed += 1
        except Exception as e:
            session.rollback()
            logger.error(f"Failed reminder processing for charge {charge_id}: {e}")
            result.record_failure(charge_id, e)

    result.log_failures("Reminder dispatcher")
    return result
