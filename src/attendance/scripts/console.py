"""
Operator console: the attendance device's menu as shell commands.

Usage:
    python -m attendance init
    python -m attendance scan 17
    python -m attendance attend          # type ids, blank = no match, x = exit
    python -m attendance show [--unsynced]
    python -m attendance sync
    python -m attendance wipe [--yes]

Every command returns a process exit code; nothing here calls sys.exit().
"""
import logging
from typing import Callable

from attendance.capture.recorder import ConsoleSensor, ScanRecorder, SensorClosed
from attendance.models.sync import SyncStatus
from attendance.storage.event_log import EventLog, LogError
from attendance.sync.coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

WIPE_CONFIRMATION = "CONFIRM"


def run_init(event_log: EventLog) -> int:
    try:
        event_log.open()
    except LogError as exc:
        print(f"❌ Cannot open attendance log: {exc}")
        return 1
    print(f"Attendance log ready: {event_log.path} (schema {event_log.schema.value})")
    return 0


def run_scan(recorder: ScanRecorder, subject_id: str) -> int:
    try:
        stored = recorder.record(subject_id)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    except LogError as exc:
        print(f"❌ Failed to save attendance: {exc}")
        return 1
    name = f" ({stored.subject_label})" if stored.subject_label else ""
    print(f"✅ Welcome {stored.subject_id}{name}: present at {stored.date} {stored.time}")
    return 0


def run_attend(recorder: ScanRecorder, read_line: Callable[[], str] = input) -> int:
    """Attendance mode: record scans until the operator types x."""
    sensor = ConsoleSensor(read_line)
    print("Entering attendance mode. Scan or type an id (x to exit).")
    recorded = 0
    while True:
        try:
            stored = recorder.poll(sensor)
        except SensorClosed:
            break
        except LogError as exc:
            print(f"❌ Failed to save attendance: {exc}")
            continue
        if stored is None:
            print("No match, try again.")
            continue
        recorded += 1
        print(f"✅ Welcome {stored.subject_label or stored.subject_id}")
    print(f"Exiting attendance mode ({recorded} recorded).")
    return 0


def run_show(event_log: EventLog, unsynced_only: bool = False) -> int:
    try:
        scan = event_log.read_all()
    except LogError as exc:
        print(f"❌ Failed to read attendance log: {exc}")
        return 1

    records = scan.unsynced if unsynced_only else scan.records
    print("\n--- Stored Attendance Records ---")
    for r in records:
        flag = "synced" if r.synced else "pending"
        print(f"#{r.record_id:<5} {r.date} {r.time:<8} {r.subject_id:<8} {r.subject_label:<20} {r.status} [{flag}]")
    print("--- End of Records ---")
    print(f"{len(records)} shown, {len(scan.unsynced)} pending sync", end="")
    if scan.corrupt:
        print(f", {len(scan.corrupt)} corrupt lines skipped", end="")
    print("\n")
    return 0


def run_sync(coordinator: SyncCoordinator) -> int:
    try:
        report = coordinator.run_cycle()
    except LogError as exc:
        print(f"❌ Sync aborted, log unchanged: {exc}")
        return 1

    if report.status is SyncStatus.NOTHING_TO_SYNC:
        print("No unsynced records. Nothing to upload.")
        return 0
    if report.status is SyncStatus.SUCCESS:
        print(f"✅ Sync completed. {report.flipped} of {report.attempted} records synced.")
        return 0
    print(f"❌ Sync failed ({report.outcome.reason}). Will try again later.")
    return 2


def run_wipe(
    event_log: EventLog,
    assume_yes: bool = False,
    read_line: Callable[[], str] = input,
) -> int:
    """Delete every record, after a Y/N question and a typed CONFIRM."""
    if not assume_yes:
        print("Are you sure you want to clear all attendance records? (Y/N)")
        print("⚠️  WARNING: This will delete all attendance data, including unsynced records!")
        if read_line().strip().lower() != "y":
            print("Operation canceled.")
            return 0
        print(f"ALL ATTENDANCE RECORDS WILL BE PERMANENTLY DELETED! Type '{WIPE_CONFIRMATION}' to proceed:")
        if read_line().strip() != WIPE_CONFIRMATION:
            print("Operation canceled: confirmation text didn't match.")
            return 0

    try:
        event_log.wipe()
    except LogError as exc:
        print(f"❌ Failed to clear attendance log: {exc}")
        return 1
    print("All attendance records have been cleared.")
    return 0
