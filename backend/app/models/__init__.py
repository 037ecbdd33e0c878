"""Database models for the run dashboard."""

from app.models.base import Base
from app.models.activity import Activity
from app.models.activity_split import ActivitySplit
from app.models.activity_analysis import ActivityAnalysis
from app.models.training_plan import TrainingPlan

__all__ = [
    "Base",
    "Activity",
    "ActivitySplit",
    "ActivityAnalysis",
    "TrainingPlan",
]
