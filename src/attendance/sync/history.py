"""Audit trail of sync cycles, one SyncLog row per cycle."""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Session, select

from attendance.models.sync import SyncLog, SyncReport


class SyncHistory:
    """Persists SyncLog rows through an SQLModel engine."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
        """
        self.engine = engine

    def start(self) -> SyncLog:
        log = SyncLog(started_at=datetime.now(timezone.utc), status="running")
        with Session(self.engine) as s:
            s.add(log)
            s.commit()
            s.refresh(log)
        return log

    def finish(
        self,
        log: SyncLog,
        *,
        report: Optional[SyncReport] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Close ``log`` with the cycle's report, or as an error if there is none."""
        with Session(self.engine) as s:
            db_log = s.get(SyncLog, log.id)
            db_log.finished_at = datetime.now(timezone.utc)
            if report is not None:
                db_log.status = report.status.value
                db_log.records_attempted = report.attempted
                db_log.records_synced = report.flipped
                if report.outcome is not None and not report.outcome.accepted:
                    db_log.error_message = report.outcome.reason
            else:
                db_log.status = "error"
                db_log.error_message = error_message
            s.add(db_log)
            s.commit()

    def latest(self) -> Optional[SyncLog]:
        with Session(self.engine) as s:
            return s.exec(
                select(SyncLog).order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
            ).first()
