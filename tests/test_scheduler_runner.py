from datetime import timedelta

from src.config import Settings
from src.scheduler.runner import create_scheduler, start_scheduler, stop_scheduler

EXPECTED_JOBS = {"overdue_detector", "due_soon_reminders", "charge_materializer"}


def test_disabled_scheduler_schedules_nothing():
    settings = Settings(scheduler_enabled=False)
    assert start_scheduler(settings) is None


def test_create_scheduler_does_not_start():
    scheduler = create_scheduler(Settings(scheduler_interval_ms=60_000))
    assert scheduler.running is False


def test_started_scheduler_registers_three_interval_jobs():
    settings = Settings(
        scheduler_enabled=True,
        scheduler_interval_ms=60_000,
        scheduler_warmup_seconds=3600,  # keep jobs from firing during the test
    )
    scheduler = start_scheduler(settings)
    try:
        assert scheduler is not None
        assert scheduler.running

        jobs = {job.id: job for job in scheduler.get_jobs()}
        assert set(jobs) == EXPECTED_JOBS
        for job in jobs.values():
            assert job.trigger.interval == timedelta(seconds=60)
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.next_run_time is not None
    finally:
        stop_scheduler(scheduler)

    assert scheduler.running is False


def test_stop_scheduler_tolerates_none():
    stop_scheduler(None)
