"""Flip past-due pending charges to overdue and notify their owners."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.billing.notify import notify_charge
from src.billing.results import DetectionResult
from src.models.base import as_naive_utc
from src.models.charge import Charge, ChargeStatus
from src.models.notification_log import NotificationChannel
from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.formatter import format_overdue_email
from src.notifications.throttle import DEFAULT_THROTTLE_HOURS

DEFAULT_CHARGE_BATCH_SIZE = 200


def claim_overdue(session: Session, charge_id: int) -> bool:
    """Compare-and-set ``pending -> overdue``.

    Returns False when the charge is no longer pending, i.e. another run
    (or a payment) got there first.
    """
    result = session.execute(
        update(Charge)
        .where(Charge.id == charge_id, Charge.status == ChargeStatus.pending)
        .values(status=ChargeStatus.overdue)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def detect_overdue(
    session: Session,
    now: datetime,
    throttle_hours: float = DEFAULT_THROTTLE_HOURS,
    batch_size: int = DEFAULT_CHARGE_BATCH_SIZE,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> DetectionResult:
    """Mark pending charges due before ``now`` as overdue and send notices."""
    now = as_naive_utc(now)
    result = DetectionResult()
    dispatcher = dispatcher or NotificationDispatcher(session)

    charge_ids = list(
        session.scalars(
            select(Charge.id)
            .where(Charge.status == ChargeStatus.pending, Charge.due_date < now)
            .order_by(Charge.due_date)
            .limit(batch_size)
        )
    )
    if not charge_ids:
        return result

    for charge_id in charge_ids:
        try:
            if not claim_overdue(session, charge_id):
                logger.debug(f"Charge {charge_id} already claimed, skipping")
                result.skipped += 1
                continue

            charge = session.get(Charge, charge_id, populate_existing=True)
            if notify_charge(
                session,
                dispatcher,
                charge,
                NotificationChannel.overdue,
                format_overdue_email,
                throttle_hours,
                now,
            ):
                result.notified += 1
            result.processed += 1
        except Exception as e:
            session.rollback()
            logger.error(f"Failed overdue processing for charge {charge_id}: {e}")
            result.record_failure(charge_id, e)

    result.log_failures("Overdue detector")
    return result
