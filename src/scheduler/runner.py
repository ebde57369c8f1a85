from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from loguru import logger

from src.config import Settings, get_settings
from src.scheduler.jobs import (
    run_charge_materializer,
    run_due_soon_reminders,
    run_overdue_detector,
)


def create_scheduler(settings: Optional[Settings] = None) -> BackgroundScheduler:
    settings = settings or get_settings()
    # max_instances=1: a tick still running makes the next one for that job a no-op
    scheduler = BackgroundScheduler(
        job_defaults={"coalesce": True, "max_instances": 1},
    )

    interval_seconds = settings.scheduler_interval_ms / 1000
    # 啟動後延遲，讓應用程式完成初始化
    first_run = datetime.now() + timedelta(seconds=settings.scheduler_warmup_seconds)

    # 每 15 分鐘（預設）檢查逾期 Charge
    scheduler.add_job(
        run_overdue_detector,
        "interval",
        seconds=interval_seconds,
        next_run_time=first_run,
        id="overdue_detector",
        name="Overdue Detector",
    )

    # 同一間隔發送即將到期提醒
    scheduler.add_job(
        run_due_soon_reminders,
        "interval",
        seconds=interval_seconds,
        next_run_time=first_run,
        id="due_soon_reminders",
        name="Due Soon Reminders",
    )

    # 同一間隔將 Plan 轉為 Charge
    scheduler.add_job(
        run_charge_materializer,
        "interval",
        seconds=interval_seconds,
        next_run_time=first_run,
        id="charge_materializer",
        name="Charge Materializer",
    )

    logger.info(
        f"Scheduler configured with jobs (every {interval_seconds:.0f}s, "
        f"first run in {settings.scheduler_warmup_seconds}s)"
    )
    return scheduler


def start_scheduler(settings: Optional[Settings] = None) -> Optional[BackgroundScheduler]:
    settings = settings or get_settings()
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled by settings")
        return None

    scheduler = create_scheduler(settings)
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler


def stop_scheduler(scheduler: Optional[BackgroundScheduler]) -> None:
    """Stop scheduling new ticks and wait for in-flight ones to finish."""
    if scheduler is None or not scheduler.running:
        return
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
