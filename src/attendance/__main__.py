"""
Main entrypoint: operator console commands and the long-running service.

Usage:
    python -m attendance serve          # API + periodic sync in one process
    python -m attendance init|scan|attend|show|sync|wipe   # see scripts/console.py
    uvicorn attendance.api.main:app --host 0.0.0.0 --port 8000  # API only, no scheduler
"""
import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _serve() -> None:
    import uvicorn

    from attendance.api.main import create_app
    from attendance.config import get_settings
    from attendance.deps import get_coordinator, get_event_log
    from attendance.scheduler.jobs import build_scheduler

    settings = get_settings()
    get_event_log().open()
    if not settings.collector_url:
        logger.warning("COLLECTOR_URL not set; every sync will be rejected until it is.")

    scheduler = build_scheduler(get_coordinator())
    scheduler.start()
    logger.info(
        "Scheduler started (sync every %d minutes)", settings.sync_interval_minutes
    )

    server = uvicorn.Server(
        uvicorn.Config(create_app(), host=settings.api_host, port=settings.api_port)
    )
    try:
        await server.serve()
    finally:
        scheduler.shutdown()
        logger.info("Goodbye.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="attendance", description="Offline-first attendance log"
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Run the API with periodic sync")
    sub.add_parser("init", help="Create the attendance log if missing")
    scan = sub.add_parser("scan", help="Record one attendance scan")
    scan.add_argument("subject_id")
    sub.add_parser("attend", help="Interactive attendance mode")
    show = sub.add_parser("show", help="Print stored records")
    show.add_argument("--unsynced", action="store_true", help="Only records not yet synced")
    sub.add_parser("sync", help="Run one sync cycle now")
    wipe = sub.add_parser("wipe", help="Delete all records (asks twice)")
    wipe.add_argument("--yes", action="store_true", help="Skip the confirmation prompts")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        asyncio.run(_serve())
        return 0

    from attendance.deps import get_coordinator, get_event_log, get_recorder
    from attendance.scripts import console

    if args.command == "init":
        return console.run_init(get_event_log())
    if args.command == "scan":
        return console.run_scan(get_recorder(), args.subject_id)
    if args.command == "attend":
        return console.run_attend(get_recorder())
    if args.command == "show":
        return console.run_show(get_event_log(), unsynced_only=args.unsynced)
    if args.command == "sync":
        return console.run_sync(get_coordinator())
    if args.command == "wipe":
        return console.run_wipe(get_event_log(), assume_yes=args.yes)
    return 1


if __name__ == "__main__":
    sys.exit(main())
