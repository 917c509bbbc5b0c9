"""
SyncCoordinator — runs one synchronization cycle against the collector.

Flow for a single cycle:
  1. Scan the log for unsynced records (fresh scan, no remembered cursor)
  2. Nothing found → report NOTHING_TO_SYNC without touching the network
  3. Serialise the whole batch into one JSON payload
  4. POST it exactly once and classify the result as accepted or rejected
  5. Rewrite the log, flipping the batch to synced only if accepted

Transport failures are outcomes, not exceptions: the batch stays unsynced and
the next cycle picks it up again. There is no retry inside a cycle.

Log I/O failures are recorded in the history (if any) and re-raised. A
transport that raises something other than TransportError is treated as a
failed delivery too.
"""
import json
import logging
import threading
from typing import Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from attendance.models.record import LogSchema, Record
from attendance.models.sync import SyncLog, SyncOutcome, SyncReport, SyncStatus
from attendance.storage.event_log import EventLog
from attendance.sync.history import SyncHistory
from attendance.sync.transport import (
    NetworkCapability,
    TransportError,
    TransportOther,
    TransportTimeout,
)

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "batch_attendance"
DEFAULT_SHEET_NAME = "Attendance"
DEFAULT_TIMEOUT_SECONDS = 20.0

# Response bodies are only logged; keep the log line readable
_MAX_LOGGED_BODY = 500


def build_payload(
    batch: Sequence[Record],
    schema: LogSchema,
    command: str = DEFAULT_COMMAND,
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> str:
    """
    Serialise a batch into the collector's JSON request body.

    Each record becomes an object keyed by the log's columns (minus synced),
    all values strings, in log order.
    """
    return json.dumps(
        {
            "command": command,
            "sheet_name": sheet_name,
            "records": [record.to_payload(schema) for record in batch],
        },
        ensure_ascii=False,
    )


def classify_result(
    status_code: Optional[int],
    error: Optional[TransportError] = None,
    treat_read_timeout_as_delivered: bool = True,
) -> SyncOutcome:
    """
    Map a POST result onto a batch outcome.

    A read timeout counts as accepted by default: the request was sent, and
    marking the batch synced risks less than sending it to an append-only
    collector twice.
    """
    if error is not None:
        if (
            isinstance(error, TransportTimeout)
            and error.possibly_delivered
            and treat_read_timeout_as_delivered
        ):
            return SyncOutcome.all_accepted()
        return SyncOutcome.rejected(f"{type(error).__name__}: {error}")
    if status_code is not None and 200 <= status_code < 300:
        return SyncOutcome.all_accepted()
    return SyncOutcome.rejected(f"HTTP {status_code}")


class SyncCoordinator:
    """Drives exactly one sync attempt per run_cycle() call."""

    def __init__(
        self,
        event_log: EventLog,
        transport: NetworkCapability,
        url: str,
        *,
        sheet_name: str = DEFAULT_SHEET_NAME,
        command: str = DEFAULT_COMMAND,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        history: Optional[SyncHistory] = None,
        treat_read_timeout_as_delivered: bool = True,
    ):
        """
        Args:
            event_log: The device's log (shared with the scan recorder).
            transport: NetworkCapability used for the single POST.
            url: Collector endpoint.
            history: Optional SyncHistory to audit each cycle.
        """
        self.event_log = event_log
        self.transport = transport
        self.url = url
        self.sheet_name = sheet_name
        self.command = command
        self.timeout = timeout
        self.history = history
        self.treat_read_timeout_as_delivered = treat_read_timeout_as_delivered
        self._cycle_lock = threading.Lock()

    def run_cycle(self) -> SyncReport:
        """
        Run one sync cycle.

        Overlapping calls (scheduler + manual trigger) run one after the other;
        the later one re-scans and sees only what is still unsynced. The audit
        history is best-effort: a database failure is logged and the cycle
        carries on.

        Returns:
            SyncReport describing what was attempted and how many records flipped.

        Raises:
            LogError: if the log cannot be read or rewritten.
        """
        with self._cycle_lock:
            audit = self._audit_start()
            try:
                report = self._run_cycle()
            except Exception as exc:
                self._audit_finish(audit, error_message=str(exc))
                raise
            self._audit_finish(audit, report=report)
            return report

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _audit_start(self) -> Optional[SyncLog]:
        if self.history is None:
            return None
        try:
            return self.history.start()
        except SQLAlchemyError as exc:
            logger.error("Could not open sync audit entry: %s", exc)
            return None

    def _audit_finish(self, audit: Optional[SyncLog], **result) -> None:
        if audit is None:
            return
        try:
            self.history.finish(audit, **result)
        except SQLAlchemyError as exc:
            logger.error("Could not close sync audit entry #%s: %s", audit.id, exc)

    def _run_cycle(self) -> SyncReport:
        batch = self.event_log.read_unsynced()
        if not batch:
            logger.info("No unsynced records found. Nothing to upload.")
            return SyncReport.nothing_to_sync()

        payload = build_payload(
            batch,
            self.event_log.schema,
            command=self.command,
            sheet_name=self.sheet_name,
        )
        logger.info(
            "Uploading %d unsynced records (%d bytes)", len(batch), len(payload)
        )

        outcome = self._post(payload)
        flipped = self.event_log.commit_sync_result(batch, outcome)

        if outcome.accepted:
            logger.info("Sync completed successfully. %d records synced.", flipped)
            status = SyncStatus.SUCCESS
        else:
            logger.warning("Sync failed (%s). Will try again later.", outcome.reason)
            status = SyncStatus.REJECTED

        return SyncReport(
            status=status,
            attempted=len(batch),
            flipped=flipped,
            outcome=outcome,
        )

    def _post(self, payload: str) -> SyncOutcome:
        status_code, error = self._send(payload)
        return classify_result(
            status_code,
            error,
            treat_read_timeout_as_delivered=self.treat_read_timeout_as_delivered,
        )

    def _send(self, payload: str) -> Tuple[Optional[int], Optional[TransportError]]:
        try:
            status_code, body = self.transport.post(self.url, payload, self.timeout)
        except TransportTimeout as exc:
            if exc.possibly_delivered:
                logger.warning("Response timeout but data likely sent: %s", exc)
            else:
                logger.warning("Request timed out before delivery: %s", exc)
            return None, exc
        except TransportError as exc:
            logger.warning("Error publishing data: %s", exc)
            return None, exc
        except Exception as exc:
            # Transport bug: still a failed delivery, the batch stays unsynced
            logger.exception("Transport raised unexpectedly")
            return None, TransportOther(str(exc), code=type(exc).__name__)

        logger.info(
            "HTTP response code %d: %s", status_code, body[:_MAX_LOGGED_BODY]
        )
        return status_code, None
