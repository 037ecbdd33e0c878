"""Tests for the run-dashboard-sync command."""

import pytest

from app import cli
from app.config import settings
from app.services.sync_service import SyncService
from tests.test_sync_service import FakeStravaClient, detail_payload


@pytest.fixture
def fake_client():
    return FakeStravaClient([{"id": 1, "type": "Run"}], {1: detail_payload(1)})


@pytest.fixture(autouse=True)
def local_sync(monkeypatch, session_factory, repository, fake_client):
    monkeypatch.setattr(settings, "STRAVA_REFRESH_TOKEN", "")
    monkeypatch.setattr(cli, "create_tables", lambda: None)
    monkeypatch.setattr(cli, "SessionLocal", session_factory)
    monkeypatch.setattr(
        cli, "SyncService", lambda: SyncService(repository=repository, client_factory=lambda: fake_client)
    )


def test_no_flags_runs_incremental_sync(capsys, fake_client):
    assert cli.main([]) == 0

    out = capsys.readouterr().out
    assert "- Mode: incremental (from 1970-01-01)" in out
    assert "- Created: 1" in out
    assert fake_client.after_values == [0, 0]


def test_full_flag(capsys, fake_client):
    assert cli.main(["--full"]) == 0

    out = capsys.readouterr().out
    assert "- Mode: full (from the beginning)" in out
    assert fake_client.after_values == [None, None]


def test_from_flag(capsys):
    assert cli.main(["--from", "2026-01-01"]) == 0
    assert "- Mode: incremental (from 2026-01-01)" in capsys.readouterr().out


def test_bad_from_date_exits_nonzero(capsys, fake_client):
    assert cli.main(["--from", "bad"]) == 1
    assert "Sync complete" not in capsys.readouterr().out
    assert fake_client.after_values == []


def test_missing_credentials_exits_nonzero(fake_client):
    fake_client.access_token = ""
    assert cli.main([]) == 1
