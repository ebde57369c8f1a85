"""Tick functions run by the billing scheduler.

Each tick opens its own session, runs one stage over a bounded batch and logs
the counters. Any exception escaping the stage is logged and swallowed here so
the next interval tick starts from scratch. The outcome of the latest tick of
each job is kept in ``last_runs`` for the admin status endpoint.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger

from src.billing.materializer import materialize_charges
from src.billing.overdue import detect_overdue
from src.billing.reminders import detect_due_soon
from src.config import get_settings
from src.db.database import get_sync_session
from src.models.base import as_naive_utc, utcnow
from src.notifications.dispatcher import NotificationDispatcher

# job id -> {"ran_at", "ok", "counts"}
last_runs: Dict[str, Dict[str, Any]] = {}


def _tick_time(now: Optional[datetime]) -> datetime:
    return as_naive_utc(now) if now else utcnow()


def _record_run(job_id: str, now: datetime, counts: Optional[Dict[str, int]]) -> None:
    last_runs[job_id] = {
        "ran_at": now.isoformat(),
        "ok": counts is not None,
        "counts": counts,
    }


def run_charge_materializer(now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
    """將到期的 Plan 轉成 pending Charge"""
    settings = get_settings()
    now = _tick_time(now)
    try:
        with get_sync_session() as session:
            result = materialize_charges(session, now, batch_size=settings.plan_batch_size)
    except Exception as e:
        logger.exception(f"Charge materializer run failed: {e}")
        _record_run("charge_materializer", now, None)
        return None

    counts = result.as_dict()
    logger.info(f"Charge materializer run: {counts}")
    _record_run("charge_materializer", now, counts)
    return counts


def run_overdue_detector(now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
    """將逾期未付的 Charge 標記為 overdue 並通知"""
    settings = get_settings()
    now = _tick_time(now)
    try:
        with get_sync_session() as session:
            result = detect_overdue(
                session,
                now,
                throttle_hours=settings.notify_throttle_hours,
                batch_size=settings.charge_batch_size,
                dispatcher=NotificationDispatcher(session),
            )
    except Exception as e:
        logger.exception(f"Overdue scheduler run failed: {e}")
        _record_run("overdue_detector", now, None)
        return None

    counts = result.as_dict()
    logger.info(f"Overdue scheduler run: {counts}")
    _record_run("overdue_detector", now, counts)
    return counts


def run_due_soon_reminders(now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
    """提醒即將到期（預設 48 小時內）的 Charge"""
    settings = get_settings()
    now = _tick_time(now)
    try:
        with get_sync_session() as session:
            result = detect_due_soon(
                session,
                now,
                lead_hours=settings.notify_reminder_lead_hours,
                throttle_hours=settings.notify_throttle_hours,
                batch_size=settings.charge_batch_size,
                dispatcher=NotificationDispatcher(session),
            )
    except Exception as e:
        logger.exception(f"Reminder scheduler run failed: {e}")
        _record_run("due_soon_reminders", now, None)
        return None

    counts = result.as_dict()
    logger.info(f"Reminder scheduler run: {counts}")
    _record_run("due_soon_reminders", now, counts)
    return counts
