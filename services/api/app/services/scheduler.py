"""In-process job scheduler (APScheduler).

Jobs:
- leaderboard_sync: every SYNC_INTERVAL_MINUTES, first run right after startup
- race_finalize: every RACE_CHECK_INTERVAL_MINUTES

Job wrappers log failures and never raise, so one bad upstream call does not
kill the schedule. Failed runs are also recorded in sync_logs by the services.
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.services.leaderboard_sync import run_full_sync
from app.services.races import finalize_due_races
from app.settings import get_settings

logger = logging.getLogger("uvicorn.error")

JOB_LEADERBOARD_SYNC = "leaderboard_sync"
JOB_RACE_FINALIZE = "race_finalize"

_scheduler: AsyncIOScheduler | None = None


async def leaderboard_sync_job() -> None:
    try:
        result = await run_full_sync()
        if result.skipped:
            return
        logger.info(
            f"Scheduled sync done: users updated={result.users.updated}, "
            f"wager inserted={result.wager.inserted} updated={result.wager.updated}"
        )
    except Exception:
        logger.exception("Scheduled leaderboard sync failed")


async def race_finalize_job() -> None:
    try:
        completed = await finalize_due_races()
        for item in completed:
            logger.info(f"Scheduled finalize completed race {item.race.name}")
    except Exception:
        logger.exception("Scheduled race finalization failed")


def start_scheduler() -> AsyncIOScheduler:
    """Start the scheduler with both jobs (must be called inside a running event loop)."""
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone=timezone.utc)
    scheduler.add_job(
        leaderboard_sync_job,
        "interval",
        minutes=settings.sync_interval_minutes,
        id=JOB_LEADERBOARD_SYNC,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    scheduler.add_job(
        race_finalize_job,
        "interval",
        minutes=settings.race_check_interval_minutes,
        id=JOB_RACE_FINALIZE,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    _scheduler = scheduler
    logger.info(
        f"Scheduler started: sync every {settings.sync_interval_minutes}m, "
        f"race check every {settings.race_check_interval_minutes}m"
    )
    return scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
