"""
Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database, so nothing a test
writes can leak into another.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import build_engine
from app.models import Base
from app.schemas.activity import PersistedActivity, PersistedSplit
from app.services.run_repository import RunRepository


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repository():
    """Repository pinned to UTC so date bucketing does not depend on the environment."""
    return RunRepository(tz=timezone.utc)


def make_activity(
    strava_id: int = 1,
    start: str = "2026-01-01T08:00:00Z",
    distance_m: float = 10000.0,
    moving_time_s: int = 3600,
    splits: int = 0,
    **overrides,
) -> PersistedActivity:
    """Build a persisted activity with sensible defaults."""
    start_date = datetime.fromisoformat(start.replace("Z", "+00:00"))
    data = dict(
        strava_id=strava_id,
        name=f"Run {strava_id}",
        start_date=start_date,
        start_date_local=start,
        distance_m=distance_m,
        moving_time_s=moving_time_s,
        elapsed_time_s=moving_time_s + 60,
        total_elevation_gain_m=25.0,
        raw_json={"id": strava_id},
        splits=[
            PersistedSplit(
                split_index=index,
                distance_m=1000.0,
                elapsed_time_s=300,
                pace_sec_per_km=300.0,
            )
            for index in range(1, splits + 1)
        ],
    )
    data.update(overrides)
    return PersistedActivity(**data)


@pytest.fixture
def activity_factory():
    return make_activity
