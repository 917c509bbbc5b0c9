"""
Process-wide instances shared by the console, the API and the scheduler.

One EventLog per process: the scan recorder and the sync coordinator must
go through the same instance so its lock serialises every write.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from attendance.capture.recorder import Roster, ScanRecorder
from attendance.config import get_settings
from attendance.db.engine import get_engine
from attendance.models.record import LogSchema
from attendance.storage.event_log import EventLog
from attendance.sync.coordinator import SyncCoordinator
from attendance.sync.history import SyncHistory
from attendance.sync.transport import HttpTransport

logger = logging.getLogger(__name__)

_event_log: Optional[EventLog] = None
_recorder: Optional[ScanRecorder] = None
_coordinator: Optional[SyncCoordinator] = None
_history: Optional[SyncHistory] = None


def get_event_log() -> EventLog:
    global _event_log
    if _event_log is None:
        settings = get_settings()
        _event_log = EventLog(settings.log_path, schema=LogSchema(settings.log_schema))
    return _event_log


def get_recorder() -> ScanRecorder:
    global _recorder
    if _recorder is None:
        settings = get_settings()
        roster = None
        if settings.roster_path is not None:
            roster = Roster.from_file(settings.roster_path)
            logger.info("Loaded %d roster entries from %s", len(roster), settings.roster_path)
        _recorder = ScanRecorder(get_event_log(), roster=roster)
    return _recorder


def get_history() -> SyncHistory:
    global _history
    if _history is None:
        _history = SyncHistory(get_engine())
    return _history


def get_coordinator() -> SyncCoordinator:
    global _coordinator
    if _coordinator is None:
        settings = get_settings()
        try:
            history = get_history()
        except SQLAlchemyError as exc:
            # Cycles still run, unaudited
            logger.error("Sync history unavailable, cycles will not be audited: %s", exc)
            history = None
        _coordinator = SyncCoordinator(
            get_event_log(),
            HttpTransport(),
            settings.collector_url,
            sheet_name=settings.sheet_name,
            command=settings.batch_command,
            timeout=settings.http_timeout_seconds,
            history=history,
            treat_read_timeout_as_delivered=settings.treat_read_timeout_as_delivered,
        )
    return _coordinator
