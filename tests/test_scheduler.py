from __future__ import annotations

import asyncio
from datetime import timedelta

from core.config import SchedulerConfig
from scheduler import CYCLE_JOB_ID, SWEEP_JOB_ID, build_scheduler, run_cycle_job, run_sweep_job


class CrashingCycle:
    def __init__(self) -> None:
        self.runs = 0

    async def run(self):
        self.runs += 1
        raise RuntimeError("boom")


class CrashingLedger:
    def sweep(self) -> int:
        raise RuntimeError("disk full")


def test_cycle_job_never_overlaps() -> None:
    scheduler = build_scheduler(object(), object(), SchedulerConfig(period_minutes=15))

    job = scheduler.get_job(CYCLE_JOB_ID)

    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.trigger.interval == timedelta(minutes=15)
    assert job.next_run_time is not None


def test_sweep_job_runs_daily() -> None:
    scheduler = build_scheduler(object(), object(), SchedulerConfig())

    job = scheduler.get_job(SWEEP_JOB_ID)

    assert job.trigger.interval == timedelta(hours=24)
    assert job.max_instances == 1


def test_job_errors_are_contained() -> None:
    cycle = CrashingCycle()

    asyncio.run(run_cycle_job(cycle))
    run_sweep_job(CrashingLedger())

    assert cycle.runs == 1
