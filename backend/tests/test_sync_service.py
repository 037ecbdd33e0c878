"""Tests for the sync orchestrator: outcomes, partial failures and the single-flight guard."""

import asyncio

import pytest

from app.config import settings
from app.exceptions import NotConfiguredError, SyncInProgressError
from app.models.activity import Activity
from app.schemas.sync import SyncMode
from app.services.strava_service import StravaAPIError
from app.services.sync_service import SyncService, SyncState, date_to_epoch


def detail_payload(activity_id, start="2026-01-01T08:00:00Z"):
    return {
        "id": activity_id,
        "name": f"Run {activity_id}",
        "start_date": start,
        "start_date_local": start,
        "distance": 5000.0,
        "moving_time": 1500,
        "elapsed_time": 1550,
        "total_elevation_gain": 10.0,
        "splits_metric": [
            {"split": 1, "distance": 1000.0, "elapsed_time": 300},
            {"split": 2, "distance": 1000.0, "elapsed_time": 295},
        ],
    }


class FakeStravaClient:
    """In-memory stand-in for StravaService."""

    def __init__(self, summaries, details, access_token="token"):
        self.access_token = access_token
        self.summaries = summaries
        self.details = details
        self.failing_details = set()
        self.failing_zones = set()
        self.page_gate = None
        self.list_error = None
        self.after_values = []
        self.refreshed_with = None

    async def refresh_tokens(self, refresh_token, client_id=None, client_secret=None):
        self.refreshed_with = refresh_token
        self.access_token = "refreshed"
        return {"access_token": "refreshed"}

    async def get_activities(self, page=1, per_page=100, after=None):
        self.after_values.append(after)
        if self.page_gate is not None:
            await self.page_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return self.summaries if page == 1 else []

    async def get_activity(self, activity_id):
        if activity_id in self.failing_details:
            raise StravaAPIError("Strava API failed after 20 attempts: HTTP 503", status_code=503)
        return self.details[activity_id]

    async def get_activity_zones(self, activity_id):
        if activity_id in self.failing_zones:
            raise StravaAPIError("Record Not Found", status_code=404)
        return [{"type": "heartrate", "distribution_buckets": [{"min": 0, "max": -1, "time": 1500}]}]

    async def get_activity_streams(self, activity_id):
        return {"time": {"data": [0, 750, 1500]}, "heartrate": {"data": [130, 150, 160]}}


@pytest.fixture(autouse=True)
def no_refresh_credentials(monkeypatch):
    monkeypatch.setattr(settings, "STRAVA_REFRESH_TOKEN", "")


@pytest.fixture
def fake_client():
    summaries = [
        {"id": 1, "type": "Run"},
        {"id": 2, "sport_type": "Run"},
        {"id": 3, "type": "Ride"},
    ]
    details = {
        1: detail_payload(1, "2026-01-01T08:00:00Z"),
        2: detail_payload(2, "2026-01-08T08:00:00Z"),
    }
    return FakeStravaClient(summaries, details)


@pytest.fixture
def sync(repository, fake_client):
    return SyncService(repository=repository, client_factory=lambda: fake_client)


def test_date_to_epoch(repository):
    assert date_to_epoch("1970-01-01", repository.tz) == 0
    assert date_to_epoch("2026-01-01", repository.tz) == 1767225600


@pytest.mark.asyncio
async def test_first_sync_creates_runs(db_session, sync, fake_client):
    stats = await sync.run_sync(db_session)

    assert stats.total_fetched_runs == 2
    assert (stats.created, stats.updated, stats.failed) == (2, 0, 0)
    assert stats.skipped_non_run == 1
    assert stats.pages_fetched == 2
    assert stats.mode == SyncMode.INCREMENTAL
    assert stats.from_date == "1970-01-01"
    assert db_session.query(Activity).count() == 2
    assert sync.repository.count_splits(db_session, 1) == 2
    assert sync.state == SyncState.IDLE


@pytest.mark.asyncio
async def test_resync_updates_and_starts_from_latest_run(db_session, sync, fake_client):
    await sync.run_sync(db_session)
    stats = await sync.run_sync(db_session)

    assert (stats.created, stats.updated) == (0, 2)
    assert stats.from_date == "2026-01-08"
    assert fake_client.after_values[-1] == date_to_epoch("2026-01-08", sync.repository.tz)
    assert db_session.query(Activity).count() == 2


@pytest.mark.asyncio
async def test_full_sync_has_no_lower_bound(db_session, sync, fake_client):
    stats = await sync.run_sync(db_session, full=True)

    assert stats.mode == SyncMode.FULL
    assert stats.from_date is None
    assert fake_client.after_values == [None, None]


@pytest.mark.asyncio
async def test_explicit_from_date(db_session, sync, fake_client):
    stats = await sync.run_sync(db_session, from_date="2026-01-05")

    assert stats.from_date == "2026-01-05"
    assert fake_client.after_values[0] == date_to_epoch("2026-01-05", sync.repository.tz)


@pytest.mark.asyncio
async def test_invalid_from_date_releases_guard(db_session, sync):
    with pytest.raises(ValueError):
        await sync.run_sync(db_session, from_date="2026/01/05")
    assert sync.state == SyncState.IDLE


@pytest.mark.asyncio
async def test_failed_activity_does_not_abort_batch(db_session, sync, fake_client):
    fake_client.failing_details.add(2)

    stats = await sync.run_sync(db_session)

    assert (stats.created, stats.updated, stats.failed) == (1, 0, 1)
    assert db_session.query(Activity).count() == 1


@pytest.mark.asyncio
async def test_missing_zones_still_persists_activity(db_session, sync, fake_client):
    fake_client.failing_zones.add(1)

    stats = await sync.run_sync(db_session)

    assert stats.failed == 0
    detail = sync.repository.get_activity_by_id(db_session, 1)
    assert detail.heart_rate_zones == []
    assert len(detail.trend_points) == 3


@pytest.mark.asyncio
async def test_concurrent_sync_is_rejected(db_session, sync, fake_client):
    fake_client.page_gate = asyncio.Event()

    first = asyncio.create_task(sync.run_sync(db_session))
    while not fake_client.after_values:
        await asyncio.sleep(0)

    assert sync.in_progress
    with pytest.raises(SyncInProgressError):
        await sync.run_sync(db_session)

    fake_client.page_gate.set()
    stats = await first
    assert stats.created == 2

    again = await sync.run_sync(db_session)
    assert again.updated == 2


@pytest.mark.asyncio
async def test_guard_released_after_failure(db_session, sync, fake_client):
    fake_client.list_error = StravaAPIError("Strava API failed after 20 attempts: HTTP 429", status_code=429)

    with pytest.raises(StravaAPIError):
        await sync.run_sync(db_session)
    assert sync.state == SyncState.IDLE

    fake_client.list_error = None
    stats = await sync.run_sync(db_session)
    assert stats.created == 2


@pytest.mark.asyncio
async def test_missing_credentials(db_session, repository):
    client = FakeStravaClient([], {}, access_token="")
    sync = SyncService(repository=repository, client_factory=lambda: client)

    with pytest.raises(NotConfiguredError):
        await sync.run_sync(db_session)
    assert sync.state == SyncState.IDLE


@pytest.mark.asyncio
async def test_refreshes_token_when_credentials_configured(db_session, sync, fake_client, monkeypatch):
    monkeypatch.setattr(settings, "STRAVA_CLIENT_ID", "123")
    monkeypatch.setattr(settings, "STRAVA_CLIENT_SECRET", "secret")
    monkeypatch.setattr(settings, "STRAVA_REFRESH_TOKEN", "refresh-me")

    await sync.run_sync(db_session)

    assert fake_client.refreshed_with == "refresh-me"
    assert fake_client.access_token == "refreshed"


class SlowZonesClient(FakeStravaClient):
    """Detail fails fast while the zones request is still in flight."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.zones_started = asyncio.Event()
        self.zones_finished = []
        self.zones_cancelled = []

    async def get_activity(self, activity_id):
        await self.zones_started.wait()
        return await super().get_activity(activity_id)

    async def get_activity_zones(self, activity_id):
        self.zones_started.set()
        try:
            await asyncio.sleep(0.2)
        except asyncio.CancelledError:
            self.zones_cancelled.append(activity_id)
            raise
        self.zones_finished.append(activity_id)
        return []


@pytest.mark.asyncio
async def test_failed_detail_cancels_pending_enrichment(db_session, repository):
    client = SlowZonesClient([{"id": 1, "type": "Run"}], {1: detail_payload(1)})
    client.failing_details.add(1)
    sync = SyncService(repository=repository, client_factory=lambda: client)

    stats = await sync.run_sync(db_session, full=True)

    assert stats.failed == 1
    assert sync.state == SyncState.IDLE
    assert client.zones_cancelled == [1]
    await asyncio.sleep(0.3)
    assert client.zones_finished == []


@pytest.mark.asyncio
async def test_unreadable_enrichment_is_treated_as_absent(db_session, sync, fake_client):
    async def not_json(activity_id):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")

    async def odd_streams(activity_id):
        return "not a stream payload"

    fake_client.get_activity_zones = not_json
    fake_client.get_activity_streams = odd_streams

    stats = await sync.run_sync(db_session)

    assert (stats.created, stats.failed) == (2, 0)
    detail = sync.repository.get_activity_by_id(db_session, 1)
    assert detail.heart_rate_zones == []
    assert detail.trend_points == []
