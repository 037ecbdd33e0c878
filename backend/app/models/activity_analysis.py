"""Cached AI feedback for an activity."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.activity import Activity


class ActivityAnalysis(Base):
    """Generated analysis text, at most one row per activity."""

    __tablename__ = "activity_ai_analysis"

    activity_strava_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("activities.strava_id", ondelete="CASCADE"),
        primary_key=True,
    )
    content: Mapped[str] = mapped_column(Text)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    activity: Mapped["Activity"] = relationship("Activity", back_populates="analysis")

    def __repr__(self) -> str:
        return f"<ActivityAnalysis(activity={self.activity_strava_id}, generated_at={self.generated_at})>"
