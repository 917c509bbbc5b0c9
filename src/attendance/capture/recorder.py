"""
Producer side: turns sensor hits into records in the event log.

The fingerprint reader itself is an external collaborator; all this module
needs from it is a capture() call that yields a subject id on a successful
match and None otherwise. ConsoleSensor stands in for it at the operator
console.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Union

from attendance.models.record import Record
from attendance.storage.event_log import EventLog

logger = logging.getLogger(__name__)


class SensorCapability(Protocol):
    def capture(self) -> Optional[str]:
        """Return the matched subject id, or None if nothing was recognised."""
        ...


class SensorClosed(Exception):
    """Raised by a sensor when the operator ends the capture session."""


class Roster:
    """Static subject id → display name lookup."""

    def __init__(self, names: Optional[Dict[str, str]] = None):
        self._names = {str(k): str(v) for k, v in (names or {}).items()}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Roster":
        """
        Load a roster from a JSON object file, e.g. {"1": "Arik", "2": "Noa"}.

        Raises:
            ValueError: if the file does not hold a JSON object.
            OSError: if the file cannot be read.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Roster {path} must be a JSON object of id -> name")
        return cls(data)

    def label_for(self, subject_id: str) -> str:
        return self._names.get(subject_id, "")

    def __len__(self) -> int:
        return len(self._names)


class ScanRecorder:
    """Stamps and appends one record per recognised scan."""

    def __init__(
        self,
        event_log: EventLog,
        roster: Optional[Roster] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.event_log = event_log
        self.roster = roster or Roster()
        self.clock = clock

    def record(self, subject_id: str) -> Record:
        """
        Append a "present" record for ``subject_id`` at the current local time.

        Raises:
            ValueError: if subject_id is blank.
            LogIOError: if the log cannot be written.
        """
        subject_id = subject_id.strip()
        label = self.roster.label_for(subject_id)
        if not label:
            logger.debug("Subject %s is not in the roster", subject_id)
        record = Record.create(subject_id, self.clock(), subject_label=label)
        return self.event_log.append(record)

    def poll(self, sensor: SensorCapability) -> Optional[Record]:
        """Capture once; record and return a hit, or return None on no match."""
        subject_id = sensor.capture()
        if not subject_id:
            return None
        return self.record(subject_id)


class ConsoleSensor:
    """
    Keyboard stand-in for the fingerprint reader.

    Each line typed is taken as a matched subject id; a blank line is a miss,
    and "x" or end of input closes the session.
    """

    def __init__(self, read_line: Callable[[], str] = input):
        self._read_line = read_line

    def capture(self) -> Optional[str]:
        try:
            line = self._read_line().strip()
        except EOFError as exc:
            raise SensorClosed() from exc
        if line.lower() == "x":
            raise SensorClosed()
        return line or None
