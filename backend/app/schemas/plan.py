"""Pydantic schemas for training plans and the daily calendar."""

from datetime import date as date_type
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.activity import RunActivityResponse


class CompletionStatus(str, Enum):
    """How a calendar day's plan compares with what was actually run."""
    NO_PLAN = "no_plan"
    MISSED = "missed"
    COMPLETED = "completed"


class TrainingPlanCreate(BaseModel):
    """Schema for creating a training plan."""

    date: date_type = Field(..., description="Plan date (YYYY-MM-DD)")
    plan_text: str = Field(..., min_length=1, description="Free-text plan content")


class TrainingPlanUpdate(BaseModel):
    """Schema for updating a training plan."""

    plan_text: str = Field(..., min_length=1)


class TrainingPlanResponse(BaseModel):
    """Schema for training plan API responses."""

    id: int = Field(..., description="Plan ID")
    date: date_type = Field(..., description="Plan date")
    plan_text: str = Field(..., description="Free-text plan content")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "date": "2026-01-15",
                "plan_text": "Easy 8km, keep HR under 150",
                "created_at": "2026-01-14T20:00:00",
                "updated_at": "2026-01-14T20:00:00",
            }
        }


class DailySummary(BaseModel):
    """One calendar cell: the plan, the runs, and the derived status."""

    date: str
    plan: Optional[TrainingPlanResponse] = None
    activities: List[RunActivityResponse] = Field(default_factory=list)
    completion_status: CompletionStatus
