"""Pydantic schemas for the Strava sync operation."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SyncMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncRequest(BaseModel):
    """Body of POST /api/sync."""

    full: bool = Field(False, description="Ignore stored data and fetch everything")
    from_date: Optional[str] = Field(
        None,
        alias="from",
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Lower bound (YYYY-MM-DD); defaults to the latest stored run",
    )

    class Config:
        populate_by_name = True


class SyncStats(BaseModel):
    """Outcome of one sync run."""

    total_fetched_runs: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    skipped_non_run: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    pages_fetched: int = Field(0, ge=0)
    mode: SyncMode
    from_date: Optional[str] = Field(None, description="Resolved lower bound, None for full syncs")

    class Config:
        json_schema_extra = {
            "example": {
                "total_fetched_runs": 50,
                "created": 3,
                "updated": 45,
                "skipped_non_run": 12,
                "failed": 2,
                "pages_fetched": 2,
                "mode": "incremental",
                "from_date": "2026-01-08",
            }
        }
