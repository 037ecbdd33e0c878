"""
Strava sync orchestration.

One sync pages the athlete's activity list, then walks the in-scope runs
one at a time: detail, zones and streams are fetched together, normalized
and upserted. A failing run is counted and logged; the batch carries on.
"""

import asyncio
import logging
from datetime import timezone
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import NotConfiguredError, SyncInProgressError
from app.schemas.sync import SyncMode, SyncStats
from app.services.run_repository import RunRepository, run_repository
from app.services.strava_normalizer import normalize_stream_payload, to_persisted_activity
from app.services.strava_service import StravaAPIError, StravaService, fetch_run_summaries
from app.services.units import day_start_utc, parse_date_string, to_calendar_date

logger = logging.getLogger(__name__)

# Lower bound used for an incremental sync against an empty database
EPOCH_DATE = "1970-01-01"


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


def date_to_epoch(value: str, tz: timezone) -> int:
    """Unix timestamp of local midnight at the start of a YYYY-MM-DD date."""
    start = day_start_utc(parse_date_string(value), tz)
    return int(start.replace(tzinfo=timezone.utc).timestamp())


class SyncService:
    """
    Single-flight Strava sync.

    The guard is instance state rather than a module global, so tests can
    run independent orchestrators side by side. A second ``run_sync`` while
    one is in flight fails immediately with SyncInProgressError.
    """

    def __init__(
        self,
        repository: RunRepository = run_repository,
        client_factory: Optional[Callable[[], StravaService]] = None,
    ):
        self.repository = repository
        self.client_factory = client_factory or StravaService
        self.state = SyncState.IDLE

    @property
    def in_progress(self) -> bool:
        return self.state == SyncState.SYNCING

    def resolve_from_date(self, db: Session, full: bool = False, from_date: Optional[str] = None) -> Optional[str]:
        """
        Lower bound for the sync window.

        Full syncs have none. An explicit date wins otherwise; failing that,
        the calendar day of the newest stored run, or 1970-01-01 when the
        database is empty.

        Raises:
            ValueError: If from_date is not YYYY-MM-DD
        """
        if full:
            return None
        if from_date:
            parse_date_string(from_date)
            return from_date

        latest = self.repository.get_latest_start_date(db)
        if latest is None:
            return EPOCH_DATE
        return to_calendar_date(latest, self.repository.tz)

    async def _prepare_client(self) -> StravaService:
        client = self.client_factory()
        if settings.can_refresh_strava_token:
            await client.refresh_tokens(settings.STRAVA_REFRESH_TOKEN)
        if not client.access_token:
            raise NotConfiguredError(
                "Missing STRAVA_ACCESS_TOKEN (or refresh credentials) in environment."
            )
        return client

    async def _optional(self, request, activity_id: int, label: str):
        # Zones and streams are enrichments; older activities often have neither
        try:
            return await request(activity_id)
        except (StravaAPIError, ValueError) as e:
            logger.info(f"No {label} for activity {activity_id}: {str(e)}")
            return None

    def _usable_streams(self, streams, activity_id: int):
        if streams is None:
            return None
        try:
            normalize_stream_payload(streams)
        except TypeError as e:
            logger.info(f"Ignoring streams for activity {activity_id}: {str(e)}")
            return None
        return streams

    async def sync_activity(self, db: Session, client: StravaService, activity_id: int) -> str:
        """
        Fetch, normalize and upsert one run. Returns 'created' or 'updated'.

        Zones and streams are fetched alongside the detail; if the detail
        fails they are cancelled before the error propagates, so no request
        outlives the run it belongs to.
        """
        detail_task = asyncio.ensure_future(client.get_activity(activity_id))
        zones_task = asyncio.ensure_future(self._optional(client.get_activity_zones, activity_id, "zones"))
        streams_task = asyncio.ensure_future(self._optional(client.get_activity_streams, activity_id, "streams"))
        tasks = (detail_task, zones_task, streams_task)
        try:
            detail, zones, streams = await asyncio.gather(*tasks)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        persisted = to_persisted_activity(detail, zones, self._usable_streams(streams, activity_id))
        return self.repository.upsert_run_activity(db, persisted)

    async def run_sync(self, db: Session, full: bool = False, from_date: Optional[str] = None) -> SyncStats:
        """
        Run one sync batch.

        Args:
            db: Database session used for every upsert in the batch
            full: Ignore stored data and fetch the whole history
            from_date: Optional inclusive lower bound (YYYY-MM-DD)

        Returns:
            SyncStats with per-outcome counts and the resolved window

        Raises:
            SyncInProgressError: If another sync is already running
            ValueError: If from_date is malformed
            NotConfiguredError: If no Strava credentials are available
            StravaAPIError: If paging the activity list fails after retries
        """
        if self.in_progress:
            raise SyncInProgressError()

        self.state = SyncState.SYNCING
        try:
            resolved_from = self.resolve_from_date(db, full, from_date)
            mode = SyncMode.FULL if full else SyncMode.INCREMENTAL
            after = date_to_epoch(resolved_from, self.repository.tz) if resolved_from else None

            logger.info(f"Starting {mode.value} sync (from={resolved_from})")
            client = await self._prepare_client()
            summaries = await fetch_run_summaries(client, after=after)

            created = updated = failed = 0
            for summary in summaries.runs:
                activity_id = summary.get("id")
                try:
                    outcome = await self.sync_activity(db, client, int(activity_id))
                except Exception as e:
                    failed += 1
                    logger.warning(f"Failed syncing activity {activity_id}: {str(e)}")
                    continue
                if outcome == "created":
                    created += 1
                else:
                    updated += 1

            stats = SyncStats(
                total_fetched_runs=len(summaries.runs),
                created=created,
                updated=updated,
                skipped_non_run=summaries.skipped_non_run,
                failed=failed,
                pages_fetched=summaries.pages_fetched,
                mode=mode,
                from_date=resolved_from,
            )
            logger.info(
                f"Sync complete: {stats.total_fetched_runs} runs, {created} created, "
                f"{updated} updated, {failed} failed, {stats.skipped_non_run} skipped"
            )
            return stats
        finally:
            self.state = SyncState.IDLE


# Singleton instance for use across the application
sync_service = SyncService()
