"""Pydantic schemas for activity storage and read operations."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ActivitySortBy(str, Enum):
    """Sort keys accepted by the activity listing."""
    START_DATE = "start_date"
    DISTANCE = "distance_m"
    PACE = "pace_sec_per_km"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ============== Persisted shape (normalizer output, upsert input) ==============

class PersistedSplit(BaseModel):
    """One split as it is written to activity_splits."""

    split_index: int = Field(..., description="1-based split number from Strava")
    distance_m: float = Field(..., description="Split distance in meters")
    elapsed_time_s: int = Field(..., description="Split elapsed time in seconds")
    elevation_difference_m: Optional[float] = None
    average_speed_mps: Optional[float] = None
    pace_sec_per_km: Optional[float] = None
    average_heartrate: Optional[float] = None
    average_cadence: Optional[float] = None
    calories: Optional[float] = None


class HeartRateZone(BaseModel):
    """A labelled heart-rate bucket with time spent in it."""

    zone: str = Field(..., description="Sequential label Z1..Zn")
    min_bpm: int = Field(..., ge=0)
    max_bpm: Optional[int] = Field(None, description="None means open-ended top zone")
    time_s: int = Field(..., ge=0)
    percentage: Optional[float] = Field(None, description="Share of total zone time, 0..1")


class TrendPoint(BaseModel):
    """A downsampled stream sample used for within-activity charts."""

    elapsed_time_s: int = Field(..., ge=0)
    distance_m: Optional[float] = None
    pace_sec_per_km: Optional[float] = None
    heartrate: Optional[float] = None


class PersistedActivity(BaseModel):
    """Everything upsert_run_activity writes for one Strava activity."""

    strava_id: int
    name: str
    device_name: Optional[str] = None
    start_date: datetime = Field(..., description="Start instant (UTC)")
    start_date_local: str = Field(..., description="Athlete wall-clock start as sent by Strava")
    distance_m: float
    moving_time_s: int
    elapsed_time_s: int
    total_elevation_gain_m: float = 0.0
    average_speed_mps: Optional[float] = None
    max_speed_mps: Optional[float] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    average_cadence: Optional[float] = None
    calories: Optional[float] = None
    suffer_score: Optional[float] = None
    map_summary_polyline: Optional[str] = None
    map_polyline: Optional[str] = None
    heart_rate_zones: List[HeartRateZone] = Field(default_factory=list)
    trend_points: List[TrendPoint] = Field(default_factory=list)
    raw_json: Any = Field(default_factory=dict, description="Unmodified source payload")
    splits: List[PersistedSplit] = Field(default_factory=list)


# ============== Read models ==============

class RunSplitResponse(PersistedSplit):
    """Split as returned to API callers."""

    class Config:
        from_attributes = True


class RunActivityResponse(BaseModel):
    """Activity as returned by listing and detail reads."""

    strava_id: int
    name: str
    device_name: Optional[str] = None
    start_date: datetime
    start_date_local: str
    local_date: str = Field(..., description="Calendar day in the configured timezone")
    distance_m: float
    moving_time_s: int
    elapsed_time_s: int
    total_elevation_gain_m: float
    average_speed_mps: Optional[float] = None
    max_speed_mps: Optional[float] = None
    pace_sec_per_km: Optional[float] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    average_cadence: Optional[float] = None
    calories: Optional[float] = None
    suffer_score: Optional[float] = None
    map_summary_polyline: Optional[str] = None
    map_polyline: Optional[str] = None
    heart_rate_zones: List[HeartRateZone] = Field(default_factory=list)
    trend_points: List[TrendPoint] = Field(default_factory=list)
    splits: Optional[List[RunSplitResponse]] = Field(None, description="Only set on detail reads")
    athlete_max_heartrate: Optional[float] = Field(
        None, description="Highest max heart rate across all runs (detail reads only)"
    )
    updated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "strava_id": 12345678,
                "name": "Morning Run",
                "start_date": "2026-01-01T08:00:00",
                "start_date_local": "2026-01-01T09:00:00Z",
                "local_date": "2026-01-01",
                "distance_m": 10000,
                "moving_time_s": 3600,
                "elapsed_time_s": 3700,
                "total_elevation_gain_m": 80,
                "pace_sec_per_km": 360.0,
                "average_heartrate": 150,
                "updated_at": "2026-01-01T10:00:00",
            }
        }


class ActivityQuery(BaseModel):
    """Filters, sort and paging for the activity listing."""

    from_date: Optional[str] = None
    to_date: Optional[str] = None
    page: int = 1
    page_size: int = 20
    sort_by: ActivitySortBy = ActivitySortBy.START_DATE
    sort_dir: SortDirection = SortDirection.DESC


class PaginatedActivities(BaseModel):
    page: int
    page_size: int
    total: int
    items: List[RunActivityResponse]


class SummaryMetrics(BaseModel):
    """Totals over a date range."""

    total_runs: int = Field(..., ge=0)
    total_distance_m: float
    total_moving_time_s: int
    total_elevation_gain_m: float
    average_pace_sec_per_km: Optional[float] = Field(
        None, description="From summed distance and time, not averaged per run"
    )
    best_pace_sec_per_km: Optional[float] = Field(
        None, description="Fastest per-run average pace"
    )
    average_heartrate: Optional[float] = None


class WeeklyTrendPoint(BaseModel):
    week_start: str = Field(..., description="Monday of the week, YYYY-MM-DD")
    total_distance_m: float
    total_moving_time_s: int
    average_pace_sec_per_km: Optional[float] = None
    runs: int


class ActivityAnalysisResponse(BaseModel):
    """Cached or freshly generated AI feedback."""

    activity_id: int
    content: str
    generated_at: datetime
    cached: bool


class CalendarFilterOptions(BaseModel):
    years: List[int]
    months_by_year: Dict[str, List[int]]


class AnalysisRequest(BaseModel):
    """Body of POST /api/activities/{id}/analysis."""

    force: bool = Field(False, description="Regenerate even when a fresh cached analysis exists")
