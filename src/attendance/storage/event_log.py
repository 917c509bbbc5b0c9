"""
EventLog — append-only attendance log in a single CSV file.

File layout:
  line 1      header naming the columns (LogSchema.V1 or LogSchema.V2)
  line 2..n   one record per line, in append order; last column is the
              synced flag ("0" or "1")

Mutations:
  * append() writes one complete line with a single write call, then
    flushes and fsyncs.
  * commit_sync_result() and wipe() rewrite the whole file into a shadow
    file (<log>.tmp), fsync it, and os.replace() it over the log. A crash
    before the replace leaves the original untouched; the stale shadow is
    discarded the next time the log is opened.

Record identity: a record's id is the position of its line among the data
lines (1-based). Positions never change because lines are never removed or
reordered, so ids handed out by append() stay valid until wipe().

Single writer: every public method holds one RLock, so a multi-threaded host
(API worker threads, scheduler executor) may share one instance. Several
processes writing the same file are not supported.
"""
import contextlib
import csv
import io
import logging
import os
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Sequence, Union

from attendance.models.record import LogSchema, Record
from attendance.models.sync import SyncOutcome

logger = logging.getLogger(__name__)

SHADOW_SUFFIX = ".tmp"


# ── Exceptions ────────────────────────────────────────────────────────────────

class LogError(Exception):
    """Base class for event log failures."""


class LogIOError(LogError):
    """Raised when the log file cannot be opened, written, or replaced."""


class CorruptRecordError(LogError):
    """A single malformed data line. Reported, skipped, never raised out of a scan."""

    def __init__(self, line_number: int, raw: bytes, reason: str):
        super().__init__(f"line {line_number}: {reason}")
        self.line_number = line_number
        self.raw = raw
        self.reason = reason


class UnknownSchemaError(LogError):
    """Raised when the header line matches no known LogSchema."""


# ── Scan result ───────────────────────────────────────────────────────────────

@dataclass
class LogScan:
    """Everything one full pass over the log found."""

    schema: LogSchema
    records: List[Record] = field(default_factory=list)
    corrupt: List[CorruptRecordError] = field(default_factory=list)

    @property
    def unsynced(self) -> List[Record]:
        return [r for r in self.records if not r.synced]


# ── Line codec ────────────────────────────────────────────────────────────────

def _format_line(values: List[str]) -> bytes:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(values)
    return buf.getvalue().encode("utf-8")


def _split_lines(content: bytes) -> List[bytes]:
    """Split into lines keeping their b"\\n"; a torn last line comes back without one."""
    parts = content.split(b"\n")
    tail = parts.pop()
    lines = [part + b"\n" for part in parts]
    if tail:
        lines.append(tail)
    return lines


def _parse_line(raw: bytes, line_number: int, schema: LogSchema) -> Record:
    """
    Parse one data line.

    Raises:
        CorruptRecordError: undecodable bytes, wrong field count, bad flag.
    """
    try:
        text = raw.decode("utf-8").rstrip("\r\n")
    except UnicodeDecodeError as exc:
        raise CorruptRecordError(line_number, raw, "not valid UTF-8") from exc
    try:
        row = next(csv.reader([text]))
        return Record.from_row(row, schema, record_id=line_number - 1)
    except (csv.Error, ValueError) as exc:
        raise CorruptRecordError(line_number, raw, str(exc)) from exc


def _fsync_dir(dirpath: Path) -> None:
    """Fsync a directory so a rename inside it is durable."""
    fd = os.open(dirpath, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


# ── Main class ────────────────────────────────────────────────────────────────

class EventLog:
    """
    Durable store of attendance records for one device.

    Usage:
        log = EventLog(Path("attendance.csv"))
        stored = log.append(Record.create("17", datetime.now()))
        batch = log.read_unsynced()
        flipped = log.commit_sync_result(batch, SyncOutcome.all_accepted())
    """

    def __init__(
        self,
        path: Union[str, Path],
        schema: LogSchema = LogSchema.V2,
    ):
        """
        Args:
            path: Location of the CSV log file.
            schema: Column layout used if the file has to be created. An
                    existing file keeps whatever layout its header declares.
        """
        self._path = Path(path)
        self._shadow_path = self._path.with_name(self._path.name + SHADOW_SUFFIX)
        self._requested_schema = schema
        self._schema: Optional[LogSchema] = None
        self._next_id: Optional[int] = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def shadow_path(self) -> Path:
        return self._shadow_path

    @property
    def schema(self) -> LogSchema:
        with self._lock:
            self._ensure_open()
            return self._schema

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def open(self) -> None:
        """
        Prepare the log for use. Called lazily by every operation.

        Discards a shadow file left behind by a crash, creates a header-only
        log if none exists, and detects the schema of an existing one.

        Raises:
            LogIOError: if the file cannot be read or created.
            UnknownSchemaError: if the existing header is not recognised.
        """
        with self._lock:
            self._discard_shadow(stale=True)
            try:
                exists = self._path.exists() and self._path.stat().st_size > 0
            except OSError as exc:
                raise LogIOError(f"Cannot stat {self._path}: {exc}") from exc

            if not exists:
                try:
                    self._path.parent.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    raise LogIOError(f"Cannot create {self._path.parent}: {exc}") from exc
                self._replace_with([_format_line(list(self._requested_schema.columns))])
                self._schema = self._requested_schema
                self._next_id = 1
                logger.info(
                    "Created attendance log %s (schema %s)",
                    self._path, self._schema.value,
                )
                return

            lines = self._read_lines()
            schema = LogSchema.from_header(lines[0].decode("utf-8", errors="replace"))
            if schema is None:
                raise UnknownSchemaError(
                    f"{self._path} has an unrecognised header: {lines[0]!r}"
                )
            self._schema = schema
            self._next_id = len(lines)

    def _ensure_open(self) -> None:
        if self._schema is None:
            self.open()

    # ── Operations ────────────────────────────────────────────────────────────

    def append(self, record: Record) -> Record:
        """
        Durably append one new record.

        The whole line is serialised first and handed to a single write call,
        so a failure cannot leave a half-written record behind a good one.

        Args:
            record: A new record (synced=False, no record_id yet).

        Returns:
            The stored record with its record_id assigned.

        Raises:
            ValueError: if the record is already synced or already has an id.
            LogIOError: if the file cannot be opened or written.
        """
        if record.synced:
            raise ValueError("only unsynced records can be appended")
        if record.record_id is not None:
            raise ValueError(f"record already stored as #{record.record_id}")

        with self._lock:
            self._ensure_open()
            if self._next_id is None:
                self._next_id = len(self._read_lines())

            line = _format_line(record.to_row(self._schema))
            try:
                with open(self._path, "rb+") as f:
                    f.seek(0, os.SEEK_END)
                    if f.tell() > 0:
                        f.seek(-1, os.SEEK_END)
                        if f.read(1) != b"\n":
                            # Torn tail from an earlier crash: keep it on its own line
                            line = b"\n" + line
                    f.seek(0, os.SEEK_END)
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as exc:
                # A partial write changes the line count; recount next time
                self._next_id = None
                raise LogIOError(f"Failed to append to {self._path}: {exc}") from exc

            stored = record.with_id(self._next_id)
            self._next_id += 1
            logger.info(
                "Recorded %s for subject %s at %s %s (#%d)",
                stored.status, stored.subject_id, stored.date, stored.time,
                stored.record_id,
            )
            return stored

    def read_all(self) -> LogScan:
        """
        Full scan of the log.

        Malformed lines are collected in LogScan.corrupt and logged as
        warnings; the scan carries on past them.

        Raises:
            LogIOError: if the file cannot be read.
        """
        with self._lock:
            self._ensure_open()
            lines = self._read_lines()

        scan = LogScan(schema=self._schema)
        for line_number, raw in enumerate(lines[1:], start=2):
            if not raw.strip():
                continue
            try:
                scan.records.append(_parse_line(raw, line_number, self._schema))
            except CorruptRecordError as exc:
                logger.warning("Skipping corrupt record in %s: %s", self._path, exc)
                scan.corrupt.append(exc)
        return scan

    def read_unsynced(self) -> List[Record]:
        """Return every record not yet accepted by the collector, oldest first."""
        return self.read_all().unsynced

    def commit_sync_result(
        self,
        attempted: Sequence[Record],
        outcome: SyncOutcome,
    ) -> int:
        """
        Rewrite the log, marking the attempted batch as synced if it was accepted.

        A record is flipped only if its id is in ``attempted``, the line at
        that position still holds the same (date, time, subject_id), and it is
        not already synced. Every other line is copied byte for byte. On a
        rejected outcome the rewrite is a byte-identical copy.

        Args:
            attempted: The records returned by read_unsynced() for this cycle.
            outcome: The collector's verdict on the whole batch.

        Returns:
            Number of records flipped to synced.

        Raises:
            ValueError: if an attempted record has no record_id.
            LogIOError: if the shadow file cannot be written or swapped in.
                The original log is left untouched.
        """
        pending = {}
        if outcome.accepted:
            for record in attempted:
                if record.record_id is None:
                    raise ValueError("attempted records must come from read_unsynced()")
                pending[record.record_id] = record

        with self._lock:
            self._ensure_open()
            lines = self._read_lines()
            out = [lines[0]]
            flipped = 0
            for record_id, raw in enumerate(lines[1:], start=1):
                target = pending.pop(record_id, None)
                if target is not None:
                    updated = self._flipped_line(raw, record_id, target)
                    if updated is not None:
                        raw = updated
                        flipped += 1
                out.append(raw)

            for record_id in pending:
                logger.warning(
                    "Record #%d is no longer in %s; left unchanged", record_id, self._path
                )

            self._replace_with(out)

        if outcome.accepted:
            logger.info("Marked %d of %d records as synced", flipped, len(attempted))
        else:
            logger.info("Batch rejected (%s); no records marked", outcome.reason)
        return flipped

    def wipe(self) -> None:
        """
        Replace the log with a header-only file of the same schema.

        Destroys every record, synced or not. Callers are expected to gate this
        behind an explicit confirmation.

        Raises:
            LogIOError: if the replacement cannot be written.
        """
        with self._lock:
            self._ensure_open()
            self._replace_with([_format_line(list(self._schema.columns))])
            self._next_id = 1
        logger.warning("Attendance log %s wiped", self._path)

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _read_lines(self) -> List[bytes]:
        try:
            content = self._path.read_bytes()
        except OSError as exc:
            raise LogIOError(f"Failed to read {self._path}: {exc}") from exc
        lines = _split_lines(content)
        if not lines:
            raise LogIOError(f"{self._path} is empty (missing header)")
        return lines

    def _flipped_line(self, raw: bytes, record_id: int, target: Record) -> Optional[bytes]:
        """The synced version of ``raw``, or None if it must not be flipped."""
        if not raw.strip():
            logger.warning("Record #%d is a blank line; left unchanged", record_id)
            return None
        try:
            current = _parse_line(raw, record_id + 1, self._schema)
        except CorruptRecordError as exc:
            logger.warning("Record #%d is corrupt; left unchanged: %s", record_id, exc)
            return None
        if current.natural_key != target.natural_key:
            logger.warning(
                "Record #%d changed since it was read (%s != %s); left unchanged",
                record_id, current.natural_key, target.natural_key,
            )
            return None
        if current.synced:
            return None
        line = _format_line(replace(current, synced=True).to_row(self._schema))
        if not raw.endswith(b"\n"):
            # Torn last line: don't invent a terminator append() would duplicate
            line = line.rstrip(b"\n")
        return line

    def _replace_with(self, lines: List[bytes]) -> None:
        """Write ``lines`` to the shadow file and atomically swap it in."""
        try:
            with open(self._shadow_path, "wb") as f:
                f.write(b"".join(lines))
                f.flush()
                os.fsync(f.fileno())
            os.replace(self._shadow_path, self._path)
        except OSError as exc:
            self._discard_shadow(stale=False)
            raise LogIOError(f"Failed to rewrite {self._path}: {exc}") from exc

        try:
            _fsync_dir(self._path.parent)
        except OSError:
            # Not every platform can open a directory for fsync
            logger.debug("Directory fsync unavailable for %s", self._path.parent)

    def _discard_shadow(self, stale: bool) -> None:
        if not self._shadow_path.exists():
            return
        if stale:
            logger.warning(
                "Discarding %s left by an interrupted rewrite", self._shadow_path
            )
        with contextlib.suppress(OSError):
            self._shadow_path.unlink()
