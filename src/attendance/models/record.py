"""Attendance record model and the persisted column layouts of the log file."""
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

STATUS_PRESENT = "present"

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"
# Hand-edited and older logs carry minutes only
_TIME_FORMATS = (TIME_FORMAT, "%H:%M")


class LogSchema(Enum):
    """
    Column layouts a log file can carry, identified by its header line.

    The two layouts are not interchangeable: a file keeps the layout it was
    created with, and there is no migration between them.
    """

    V1 = "v1"
    V2 = "v2"

    @property
    def columns(self) -> Tuple[str, ...]:
        return _COLUMNS[self]

    @property
    def header(self) -> str:
        return ",".join(self.columns)

    @property
    def payload_columns(self) -> Tuple[str, ...]:
        """Columns sent to the collector: everything except the synced flag."""
        return self.columns[:-1]

    @classmethod
    def from_header(cls, header: str) -> Optional["LogSchema"]:
        cleaned = header.strip().lstrip("\ufeff")
        for schema in cls:
            if cleaned == schema.header:
                return schema
        return None


_COLUMNS: Dict[LogSchema, Tuple[str, ...]] = {
    LogSchema.V1: ("date", "student_id", "status", "synced"),
    LogSchema.V2: ("date", "time", "student_id", "student_name", "status", "synced"),
}


@dataclass(frozen=True)
class Record:
    """
    One attendance scan.

    Immutable apart from ``synced``, which only ever goes from False to True
    and is changed by rewriting the log, never in memory.

    record_id is the 1-based position of the record's line among the data
    lines of its log file. The log is append-only and never reordered, so the
    position handed out at append time identifies the record for the life of
    the file.
    """

    date: str
    time: str
    subject_id: str
    subject_label: str = ""
    status: str = STATUS_PRESENT
    synced: bool = False
    record_id: Optional[int] = None

    def __post_init__(self):
        if not self.subject_id or not self.subject_id.strip():
            raise ValueError("subject_id must not be empty")
        for name in ("date", "time", "subject_id", "subject_label", "status"):
            value = getattr(self, name)
            if "\n" in value or "\r" in value:
                raise ValueError(f"{name} must not contain line breaks: {value!r}")

    @classmethod
    def create(
        cls,
        subject_id: str,
        at: datetime,
        subject_label: str = "",
        status: str = STATUS_PRESENT,
    ) -> "Record":
        """Build a fresh, unsynced record stamped with local time ``at``."""
        return cls(
            date=at.strftime(DATE_FORMAT),
            time=at.strftime(TIME_FORMAT),
            subject_id=subject_id.strip(),
            subject_label=subject_label,
            status=status,
        )

    @property
    def natural_key(self) -> Tuple[str, str, str]:
        return (self.date, self.time, self.subject_id)

    @property
    def timestamp(self) -> Optional[datetime]:
        """Local naive datetime of the scan, or None if date/time do not parse."""
        for time_format in _TIME_FORMATS:
            try:
                return datetime.strptime(
                    f"{self.date} {self.time}", f"{DATE_FORMAT} {time_format}"
                )
            except ValueError:
                continue
        return None

    def with_id(self, record_id: int) -> "Record":
        return replace(self, record_id=record_id)

    # ─── Column mapping ───────────────────────────────────────────────────────

    def to_row(self, schema: LogSchema) -> List[str]:
        """Field values in the column order of ``schema``."""
        values = {
            "date": self.date,
            "time": self.time,
            "student_id": self.subject_id,
            "student_name": self.subject_label,
            "status": self.status,
            "synced": "1" if self.synced else "0",
        }
        return [values[c] for c in schema.columns]

    def to_payload(self, schema: LogSchema) -> Dict[str, str]:
        """Wire representation: persisted columns minus ``synced``."""
        row = self.to_row(schema)
        return dict(zip(schema.payload_columns, row))

    @classmethod
    def from_row(
        cls, row: List[str], schema: LogSchema, record_id: Optional[int] = None
    ) -> "Record":
        """
        Parse one CSV row laid out per ``schema``.

        Raises:
            ValueError: wrong field count, bad synced flag, or empty subject id.
        """
        if len(row) != len(schema.columns):
            raise ValueError(
                f"expected {len(schema.columns)} fields, got {len(row)}"
            )
        fields = dict(zip(schema.columns, row))
        flag = fields["synced"].strip()
        if flag not in ("0", "1"):
            raise ValueError(f"synced flag must be 0 or 1, got {flag!r}")
        return cls(
            date=fields["date"],
            time=fields.get("time", ""),
            subject_id=fields["student_id"],
            subject_label=fields.get("student_name", ""),
            status=fields["status"],
            synced=flag == "1",
            record_id=record_id,
        )
