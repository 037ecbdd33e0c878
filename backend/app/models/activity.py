"""Activity model for storing synced Strava runs."""

from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.services.units import pace_from_distance_and_time

if TYPE_CHECKING:
    from app.models.activity_split import ActivitySplit
    from app.models.activity_analysis import ActivityAnalysis


class Activity(Base):
    """One run ingested from Strava, keyed by its Strava id."""

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    strava_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)

    # Activity details
    name: Mapped[str] = mapped_column(String(255))
    device_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, index=True)  # UTC, naive
    start_date_local: Mapped[str] = mapped_column(String(32))  # athlete wall clock as sent

    # Performance metrics
    distance_m: Mapped[float] = mapped_column(Float)
    moving_time_s: Mapped[int] = mapped_column(Integer)
    elapsed_time_s: Mapped[int] = mapped_column(Integer)
    total_elevation_gain_m: Mapped[float] = mapped_column(Float, default=0.0)
    average_speed_mps: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_speed_mps: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_heartrate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # bpm
    max_heartrate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # bpm
    average_cadence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    calories: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    suffer_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Route
    map_summary_polyline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    map_polyline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Structured sub-documents
    heartrate_zones: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    trend_points: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    raw_json: Mapped[Any] = mapped_column(JSON)

    # Timestamps
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    splits: Mapped[List["ActivitySplit"]] = relationship(
        "ActivitySplit",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ActivitySplit.split_index",
    )
    analysis: Mapped[Optional["ActivityAnalysis"]] = relationship(
        "ActivityAnalysis",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    @property
    def pace_sec_per_km(self) -> Optional[float]:
        """Average pace, derived on read and never stored."""
        return pace_from_distance_and_time(self.distance_m, self.moving_time_s)

    def __repr__(self) -> str:
        return f"<Activity(strava_id={self.strava_id}, name='{self.name}', start_date={self.start_date})>"
