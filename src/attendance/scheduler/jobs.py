"""
APScheduler jobs for background sync.

The periodic sync is what keeps the device self-healing: every run re-scans
the log, so anything a previous cycle failed to deliver (offline, collector
down, power loss mid-cycle) is retried here without any remembered state.

The scheduler runs inside the same process as the API (wired in __main__.py).
"""
import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from attendance.config import get_settings

logger = logging.getLogger(__name__)


def build_scheduler(coordinator) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        coordinator: SyncCoordinator whose run_cycle() the job calls.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _periodic_sync,
        trigger="interval",
        minutes=settings.sync_interval_minutes,
        id="periodic_sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs={"coordinator": coordinator},
    )

    return scheduler


async def _periodic_sync(coordinator) -> None:
    """
    Periodic job: run one sync cycle off the event loop.

    run_cycle() blocks on flash writes and on the HTTP request, so it runs in
    the default thread pool executor.
    """
    try:
        loop = asyncio.get_event_loop()
        report = await loop.run_in_executor(None, coordinator.run_cycle)
        logger.info(
            "Periodic sync finished: %s (%d attempted, %d synced)",
            report.status.value, report.attempted, report.flipped,
        )
    except Exception as exc:
        logger.error("Periodic sync failed: %s", exc)
