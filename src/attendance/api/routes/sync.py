"""Sync trigger and status routes."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel

from attendance.deps import get_coordinator, get_history
from attendance.storage.event_log import LogError
from attendance.sync.history import SyncHistory

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncStatusResponse(BaseModel):
    status: str
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    records_attempted: Optional[int]
    records_synced: Optional[int]
    error_message: Optional[str]


def _do_sync() -> None:
    """Background task: run one sync cycle; failures are logged, not raised."""
    try:
        report = get_coordinator().run_cycle()
        logger.info(
            "On-demand sync finished: %s (%d attempted, %d synced)",
            report.status.value, report.attempted, report.flipped,
        )
    except LogError as exc:
        logger.error("On-demand sync failed: %s", exc)


@router.post("/trigger")
def trigger_sync(background_tasks: BackgroundTasks):
    """
    Trigger an on-demand sync (operator "sync now").
    Returns immediately; the cycle runs in the background.
    """
    background_tasks.add_task(_do_sync)
    return {"message": "Sync started"}


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(history: SyncHistory = Depends(get_history)):
    """Return the status of the most recent sync cycle."""
    log = history.latest()
    if not log:
        return SyncStatusResponse(
            status="never_run",
            started_at=None,
            finished_at=None,
            records_attempted=None,
            records_synced=None,
            error_message=None,
        )
    return SyncStatusResponse(
        status=log.status,
        started_at=log.started_at,
        finished_at=log.finished_at,
        records_attempted=log.records_attempted,
        records_synced=log.records_synced,
        error_message=log.error_message,
    )
