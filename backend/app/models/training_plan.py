"""Training plan model: one free-text plan per calendar date."""

from datetime import date as date_type
from datetime import datetime

from sqlalchemy import Date, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class TrainingPlan(Base):
    """The plan the runner wrote down for a single day."""

    __tablename__ = "training_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    date: Mapped[date_type] = mapped_column(Date, unique=True, index=True)
    plan_text: Mapped[str] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<TrainingPlan(id={self.id}, date={self.date})>"
