"""Background jobs: offer expiry sweep and search retry drain.

Runs on APScheduler's AsyncIOScheduler inside the application event loop,
started and stopped by the FastAPI lifespan.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.mp_search.projector import SearchProjector
from src.mp_sweeper.expiry import ExpirySweeper

logger = logging.getLogger(__name__)

EXPIRE_OFFERS_JOB = "expire_offers"
SEARCH_RETRY_JOB = "search_retry"


def _on_job_error(event: JobExecutionEvent) -> None:
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id, event.exception,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event: JobExecutionEvent) -> None:
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id, event.scheduled_run_time,
    )


def build_scheduler(
    sweeper: ExpirySweeper,
    projector: SearchProjector,
    sweep_interval_minutes: int,
    retry_interval_minutes: int,
) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )
    scheduler.add_job(
        sweeper.run_once,
        trigger=IntervalTrigger(minutes=sweep_interval_minutes),
        id=EXPIRE_OFFERS_JOB,
        name="Expire stale pending offers",
        replace_existing=True,
    )
    scheduler.add_job(
        projector.retry_pending,
        trigger=IntervalTrigger(minutes=retry_interval_minutes),
        id=SEARCH_RETRY_JOB,
        name="Retry failed search pushes",
        replace_existing=True,
    )
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)
    logger.info(
        "Scheduled jobs: %s (every %d min), %s (every %d min)",
        EXPIRE_OFFERS_JOB, sweep_interval_minutes, SEARCH_RETRY_JOB, retry_interval_minutes,
    )
    return scheduler
