import argparse
from datetime import datetime

from loguru import logger

from src.config import get_settings
from src.db.database import Base, get_sync_engine
from src.scheduler.jobs import (
    run_charge_materializer,
    run_due_soon_reminders,
    run_overdue_detector,
)

settings = get_settings()

STAGES = {
    "materialize": run_charge_materializer,
    "overdue": run_overdue_detector,
    "reminders": run_due_soon_reminders,
}


def init_database():
    """初始化資料庫"""
    import src.models  # noqa: F401

    Base.metadata.create_all(get_sync_engine())
    logger.info("Database initialized")


def run_tick(stage: str = "all", now: datetime = None):
    """手動執行一次排程任務"""
    if stage == "all":
        selected = list(STAGES.items())
    elif stage in STAGES:
        selected = [(stage, STAGES[stage])]
    else:
        logger.error(f"Unknown stage: {stage}. Available: {list(STAGES.keys())}")
        return

    for name, job in selected:
        logger.info(f"Running {name}")
        result = job(now)
        logger.info(f"Result: {result}")


def main():
    parser = argparse.ArgumentParser(description="Fleet Billing Scheduler CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    subparsers.add_parser("init", help="Initialize database")

    # tick command
    tick_parser = subparsers.add_parser("tick", help="Run scheduler stages once")
    tick_parser.add_argument(
        "--stage", "-s", default="all", help="materialize, overdue, reminders or all"
    )
    tick_parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        help="Override current time (ISO 8601; naive values are UTC, offsets are converted)",
    )

    # serve command
    subparsers.add_parser("serve", help="Start API server with the scheduler")

    args = parser.parse_args()

    if args.command == "init":
        init_database()
    elif args.command == "tick":
        run_tick(args.stage, args.now)
    elif args.command == "serve":
        import uvicorn

        uvicorn.run(
            "src.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
