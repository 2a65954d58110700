"""Timer wiring for the pipeline cycle and the ledger sweep."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import SchedulerConfig
from core.cycle import PipelineCycle
from core.dedup import DedupLedger

LOGGER = logging.getLogger(__name__)

CYCLE_JOB_ID = "pipeline_cycle"
SWEEP_JOB_ID = "ledger_sweep"


async def run_cycle_job(cycle: PipelineCycle) -> None:
    try:
        await cycle.run()
    except Exception:
        LOGGER.exception("Pipeline cycle crashed")


def run_sweep_job(ledger: DedupLedger) -> None:
    try:
        ledger.sweep()
    except Exception:
        LOGGER.exception("Ledger sweep failed")


def build_scheduler(
    cycle: PipelineCycle,
    ledger: DedupLedger,
    config: SchedulerConfig,
) -> AsyncIOScheduler:
    """Create (but do not start) the scheduler.

    ``max_instances=1`` keeps cycles from overlapping: a firing that comes
    due while the previous cycle is still running is skipped.
    """

    scheduler = AsyncIOScheduler(timezone=timezone.utc)
    # APScheduler treats an explicit next_run_time=None as "paused".
    first_run = {"next_run_time": datetime.now(timezone.utc)} if config.run_on_start else {}
    scheduler.add_job(
        run_cycle_job,
        IntervalTrigger(minutes=config.period_minutes, timezone=timezone.utc),
        args=[cycle],
        id=CYCLE_JOB_ID,
        name="Scan channels and notify",
        max_instances=1,
        coalesce=True,
        **first_run,
    )
    scheduler.add_job(
        run_sweep_job,
        IntervalTrigger(hours=config.sweep_hours, timezone=timezone.utc),
        args=[ledger],
        id=SWEEP_JOB_ID,
        name="Purge expired dedup entries",
        max_instances=1,
        coalesce=True,
    )
    LOGGER.info(
        "Scheduler configured: cycle every %s min, ledger sweep every %s h",
        config.period_minutes,
        config.sweep_hours,
    )
    return scheduler
