"""Attendance record routes: view the log and record scans."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from attendance.capture.recorder import ScanRecorder
from attendance.deps import get_event_log, get_recorder
from attendance.models.record import Record
from attendance.storage.event_log import EventLog, LogError

router = APIRouter()


class RecordOut(BaseModel):
    record_id: Optional[int]
    date: str
    time: str
    subject_id: str
    subject_label: str
    status: str
    synced: bool

    @classmethod
    def from_record(cls, record: Record) -> "RecordOut":
        return cls(
            record_id=record.record_id,
            date=record.date,
            time=record.time,
            subject_id=record.subject_id,
            subject_label=record.subject_label,
            status=record.status,
            synced=record.synced,
        )


class RecordListResponse(BaseModel):
    schema_version: str
    records: List[RecordOut]
    corrupt_lines: int


class ScanRequest(BaseModel):
    subject_id: str


@router.get("/", response_model=RecordListResponse)
def list_records(unsynced: bool = False, event_log: EventLog = Depends(get_event_log)):
    """List stored records in log order; ?unsynced=true for the pending batch only."""
    try:
        scan = event_log.read_all()
    except LogError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    records = scan.unsynced if unsynced else scan.records
    return RecordListResponse(
        schema_version=scan.schema.value,
        records=[RecordOut.from_record(r) for r in records],
        corrupt_lines=len(scan.corrupt),
    )


@router.post("/", response_model=RecordOut, status_code=201)
def record_scan(request: ScanRequest, recorder: ScanRecorder = Depends(get_recorder)):
    """Record a "present" scan for a subject (used by networked readers and kiosks)."""
    try:
        stored = recorder.record(request.subject_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except LogError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return RecordOut.from_record(stored)
