"""Per-kilometre split rows belonging to an activity."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.activity import Activity


class ActivitySplit(Base):
    """A metric split as reported by Strava's splits_metric."""

    __tablename__ = "activity_splits"
    __table_args__ = (
        UniqueConstraint("activity_strava_id", "split_index", name="uq_activity_split_index"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    activity_strava_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("activities.strava_id", ondelete="CASCADE"), index=True
    )
    split_index: Mapped[int] = mapped_column(Integer)

    distance_m: Mapped[float] = mapped_column(Float)
    elapsed_time_s: Mapped[int] = mapped_column(Integer)
    elevation_difference_m: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_speed_mps: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pace_sec_per_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_heartrate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_cadence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    calories: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    activity: Mapped["Activity"] = relationship("Activity", back_populates="splits")

    def __repr__(self) -> str:
        return f"<ActivitySplit(activity={self.activity_strava_id}, index={self.split_index})>"
