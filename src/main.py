from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from loguru import logger

from src.config import get_settings
from src.db.database import init_db
from src.scheduler.jobs import last_runs
from src.scheduler.runner import start_scheduler, stop_scheduler

settings = get_settings()
scheduler: Optional[object] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    logger.info("Starting up...")
    await init_db()

    # 啟動排程器（停用時回傳 None）
    scheduler = start_scheduler(settings)

    yield

    # 停止排程，等待執行中的任務完成
    stop_scheduler(scheduler)
    scheduler = None
    logger.info("Shutting down...")


app = FastAPI(
    title="Fleet Billing Scheduler",
    description="Recurring charges, overdue detection and payment reminders",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/admin/status")
async def admin_status(x_admin_key: str = Header(None)):
    # Require admin key in production
    if settings.is_production:
        if not settings.admin_api_key:
            raise HTTPException(status_code=503, detail="Admin API not configured")
        if x_admin_key != settings.admin_api_key:
            raise HTTPException(status_code=401, detail="Invalid admin key")

    jobs = [_describe_job(job) for job in scheduler.get_jobs()] if scheduler else []

    return {
        "scheduler_enabled": settings.scheduler_enabled,
        "scheduler_running": scheduler is not None and scheduler.running,
        "interval_seconds": settings.scheduler_interval_ms / 1000,
        "jobs": jobs,
    }


def _describe_job(job) -> dict:
    """Schedule of one billing job plus the counters of its latest tick."""
    return {
        "id": job.id,
        "name": job.name,
        "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        "max_instances": job.max_instances,
        "coalesce": job.coalesce,
        "last_run": last_runs.get(job.id),
    }
