"""Pydantic schemas package for API request/response models."""

from app.schemas.activity import (
    ActivityAnalysisResponse,
    ActivityQuery,
    ActivitySortBy,
    AnalysisRequest,
    CalendarFilterOptions,
    HeartRateZone,
    PaginatedActivities,
    PersistedActivity,
    PersistedSplit,
    RunActivityResponse,
    RunSplitResponse,
    SortDirection,
    SummaryMetrics,
    TrendPoint,
    WeeklyTrendPoint,
)
from app.schemas.plan import (
    CompletionStatus,
    DailySummary,
    TrainingPlanCreate,
    TrainingPlanResponse,
    TrainingPlanUpdate,
)
from app.schemas.sync import SyncMode, SyncRequest, SyncStats

__all__ = [
    # Activity schemas
    "ActivityAnalysisResponse",
    "ActivityQuery",
    "ActivitySortBy",
    "AnalysisRequest",
    "CalendarFilterOptions",
    "HeartRateZone",
    "PaginatedActivities",
    "PersistedActivity",
    "PersistedSplit",
    "RunActivityResponse",
    "RunSplitResponse",
    "SortDirection",
    "SummaryMetrics",
    "TrendPoint",
    "WeeklyTrendPoint",
    # Training plan schemas
    "CompletionStatus",
    "DailySummary",
    "TrainingPlanCreate",
    "TrainingPlanResponse",
    "TrainingPlanUpdate",
    # Sync schemas
    "SyncMode",
    "SyncRequest",
    "SyncStats",
]
