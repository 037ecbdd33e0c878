"""Command-line Strava sync: ``run-dashboard-sync [--full] [--from YYYY-MM-DD]``."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from app.database import SessionLocal, create_tables
from app.exceptions import ConflictError, NotConfiguredError
from app.services.strava_service import StravaAPIError
from app.services.sync_service import SyncService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run-dashboard-sync",
        description="Sync run activities from Strava into the local database.",
    )
    parser.add_argument("--full", action="store_true", help="perform a full sync")
    parser.add_argument("--from", dest="from_date", metavar="YYYY-MM-DD", help="sync from date (inclusive)")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


async def _run(full: bool, from_date: Optional[str]):
    create_tables()
    db = SessionLocal()
    try:
        return await SyncService().run_sync(db, full=full, from_date=from_date)
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        stats = asyncio.run(_run(args.full, args.from_date))
    except (ValueError, ConflictError, NotConfiguredError, StravaAPIError) as e:
        logger.error(f"Sync failed: {str(e)}")
        return 1

    print("Sync complete")
    print(f"- Mode: {stats.mode.value} (from {stats.from_date or 'the beginning'})")
    print(f"- Fetched run activities: {stats.total_fetched_runs}")
    print(f"- Created: {stats.created}")
    print(f"- Updated: {stats.updated}")
    print(f"- Skipped non-run: {stats.skipped_non_run}")
    print(f"- Failed: {stats.failed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
