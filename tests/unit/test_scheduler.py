"""Background job registration."""

from apscheduler.triggers.interval import IntervalTrigger

from src.mp_sweeper.scheduler import EXPIRE_OFFERS_JOB, SEARCH_RETRY_JOB, build_scheduler


class _Sweeper:
    async def run_once(self) -> None:
        return None


class _Projector:
    async def retry_pending(self, max_items: int = 100) -> tuple[int, int]:
        return 0, 0


def test_registers_both_jobs() -> None:
    sweeper, projector = _Sweeper(), _Projector()

    scheduler = build_scheduler(sweeper, projector, 60, 5)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {EXPIRE_OFFERS_JOB, SEARCH_RETRY_JOB}
    assert jobs[EXPIRE_OFFERS_JOB].func == sweeper.run_once
    assert jobs[SEARCH_RETRY_JOB].func == projector.retry_pending

    sweep_trigger = jobs[EXPIRE_OFFERS_JOB].trigger
    assert isinstance(sweep_trigger, IntervalTrigger)
    assert sweep_trigger.interval.total_seconds() == 3600
    assert jobs[SEARCH_RETRY_JOB].trigger.interval.total_seconds() == 300


async def test_job_defaults_applied_on_start() -> None:
    scheduler = build_scheduler(_Sweeper(), _Projector(), 60, 5)
    assert not scheduler.running

    scheduler.start(paused=True)
    try:
        for job in scheduler.get_jobs():
            assert job.coalesce is True
            assert job.max_instances == 1
    finally:
        scheduler.shutdown(wait=False)
