"""Sync cycle results and the sync audit log model."""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncStatus(str, Enum):
    NOTHING_TO_SYNC = "nothing_to_sync"
    SUCCESS = "success"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SyncOutcome:
    """Verdict on a whole batch: either every record was accepted or none was."""

    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def all_accepted(cls) -> "SyncOutcome":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: str) -> "SyncOutcome":
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class SyncReport:
    """
    Result of one SyncCoordinator.run_cycle() call.

    outcome is None only when there was nothing to sync and no request was made.
    """

    status: SyncStatus
    attempted: int = 0
    flipped: int = 0
    outcome: Optional[SyncOutcome] = None

    @classmethod
    def nothing_to_sync(cls) -> "SyncReport":
        return cls(status=SyncStatus.NOTHING_TO_SYNC)


class SyncLog(SQLModel, table=True):
    """Records each sync cycle for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    status: str = "running"  # "running", "success", "nothing_to_sync", "rejected", "error"
    records_attempted: int = 0
    records_synced: int = 0
    error_message: Optional[str] = None
