"""
Run storage and read-side aggregation.

Every date filter is evaluated in one fixed timezone: an inclusive
``from``/``to`` calendar range is turned into half-open UTC bounds on
``Activity.start_date`` and grouping uses :mod:`app.services.units`.
"""

import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import and_, case, func
from sqlalchemy.orm import Query, Session

from app.config import settings
from app.models.activity import Activity
from app.models.activity_analysis import ActivityAnalysis
from app.models.activity_split import ActivitySplit
from app.schemas.activity import (
    ActivityAnalysisResponse,
    ActivityQuery,
    ActivitySortBy,
    HeartRateZone,
    PaginatedActivities,
    PersistedActivity,
    RunActivityResponse,
    RunSplitResponse,
    SortDirection,
    SummaryMetrics,
    TrendPoint,
    WeeklyTrendPoint,
)
from app.services.units import (
    as_utc,
    date_range_bounds,
    pace_from_distance_and_time,
    parse_date_string,
    to_calendar_date,
    week_start,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

DateInput = Union[str, date, None]

# Activity columns copied verbatim from the persisted shape on upsert
_ACTIVITY_FIELDS = (
    "name",
    "device_name",
    "start_date",
    "start_date_local",
    "distance_m",
    "moving_time_s",
    "elapsed_time_s",
    "total_elevation_gain_m",
    "average_speed_mps",
    "max_speed_mps",
    "average_heartrate",
    "max_heartrate",
    "average_cadence",
    "calories",
    "suffer_score",
    "map_summary_polyline",
    "map_polyline",
    "raw_json",
)


def pace_expression():
    """SQL pace in sec/km, NULL when distance or moving time is not positive."""
    return case(
        (
            and_(Activity.distance_m > 0, Activity.moving_time_s > 0),
            Activity.moving_time_s * 1000.0 / Activity.distance_m,
        ),
        else_=None,
    )


def _coerce_date(value: DateInput) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date_string(value)


def _parse_items(raw: Optional[Iterable], model):
    items = []
    if not isinstance(raw, list):
        return items
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            items.append(model.model_validate(item))
        except ValidationError:
            logger.debug(f"Skipping malformed stored {model.__name__}: {item!r}")
    return items


class RunRepository:
    """
    Owns runs, their splits and cached analyses.

    Methods take the SQLAlchemy session as their first argument, the same
    way the other services do, so callers control session lifetime.
    """

    def __init__(self, tz: Optional[timezone] = None):
        self._tz = tz

    @property
    def tz(self) -> timezone:
        return self._tz or settings.calendar_timezone

    # ============== Writes ==============

    def upsert_run_activity(self, db: Session, activity: PersistedActivity) -> str:
        """
        Insert or fully replace a run and its splits in one transaction.

        Splits are always deleted and re-inserted; zones and trend points are
        overwritten with whatever the latest payload produced.

        Returns:
            'created' if the Strava id was new, otherwise 'updated'
        """
        try:
            existing = db.query(Activity).filter(Activity.strava_id == activity.strava_id).first()
            outcome = "updated" if existing else "created"
            row = existing or Activity(strava_id=activity.strava_id)

            for name in _ACTIVITY_FIELDS:
                setattr(row, name, getattr(activity, name))
            row.start_date = as_utc(activity.start_date).replace(tzinfo=None)
            row.heartrate_zones = [zone.model_dump() for zone in activity.heart_rate_zones]
            row.trend_points = [point.model_dump() for point in activity.trend_points]
            row.updated_at = datetime.utcnow()

            if existing:
                existing.splits.clear()
                db.flush()
            else:
                db.add(row)

            row.splits.extend(
                ActivitySplit(**split.model_dump()) for split in activity.splits
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.debug(f"Upserted run {activity.strava_id} ({outcome}, {len(activity.splits)} splits)")
        return outcome

    # ============== Mapping ==============

    def to_run_activity(
        self,
        activity: Activity,
        include_splits: bool = False,
        athlete_max_heartrate: Optional[float] = None,
    ) -> RunActivityResponse:
        trend_points = _parse_items(activity.trend_points, TrendPoint)
        trend_points.sort(key=lambda point: point.elapsed_time_s)

        return RunActivityResponse(
            strava_id=activity.strava_id,
            name=activity.name,
            device_name=activity.device_name,
            start_date=activity.start_date,
            start_date_local=activity.start_date_local,
            local_date=to_calendar_date(activity.start_date, self.tz),
            distance_m=activity.distance_m,
            moving_time_s=activity.moving_time_s,
            elapsed_time_s=activity.elapsed_time_s,
            total_elevation_gain_m=activity.total_elevation_gain_m,
            average_speed_mps=activity.average_speed_mps,
            max_speed_mps=activity.max_speed_mps,
            pace_sec_per_km=activity.pace_sec_per_km,
            average_heartrate=activity.average_heartrate,
            max_heartrate=activity.max_heartrate,
            average_cadence=activity.average_cadence,
            calories=activity.calories,
            suffer_score=activity.suffer_score,
            map_summary_polyline=activity.map_summary_polyline,
            map_polyline=activity.map_polyline,
            heart_rate_zones=_parse_items(activity.heartrate_zones, HeartRateZone),
            trend_points=trend_points,
            splits=(
                [RunSplitResponse.model_validate(split) for split in activity.splits]
                if include_splits else None
            ),
            athlete_max_heartrate=athlete_max_heartrate,
            updated_at=activity.updated_at,
        )

    # ============== Reads ==============

    def _apply_date_range(self, query: Query, from_date: DateInput, to_date: DateInput) -> Query:
        lower, upper = date_range_bounds(_coerce_date(from_date), _coerce_date(to_date), self.tz)
        if lower is not None:
            query = query.filter(Activity.start_date >= lower)
        if upper is not None:
            query = query.filter(Activity.start_date < upper)
        return query

    def get_summary(self, db: Session, from_date: DateInput = None, to_date: DateInput = None) -> SummaryMetrics:
        """
        Totals over an inclusive calendar range (open-ended when omitted).

        Average pace comes from the summed distance and time; best pace is the
        fastest per-run average pace; average heart rate only counts runs that
        recorded one.

        Raises:
            ValueError: If a date is not YYYY-MM-DD
        """
        query = db.query(
            func.count(Activity.id).label("total_runs"),
            func.coalesce(func.sum(Activity.distance_m), 0).label("total_distance_m"),
            func.coalesce(func.sum(Activity.moving_time_s), 0).label("total_moving_time_s"),
            func.coalesce(func.sum(Activity.total_elevation_gain_m), 0).label("total_elevation_gain_m"),
            func.avg(Activity.average_heartrate).label("average_heartrate"),
            func.min(pace_expression()).label("best_pace"),
        )
        row = self._apply_date_range(query, from_date, to_date).one()

        total_distance_m = float(row.total_distance_m)
        total_moving_time_s = int(row.total_moving_time_s)
        return SummaryMetrics(
            total_runs=int(row.total_runs),
            total_distance_m=total_distance_m,
            total_moving_time_s=total_moving_time_s,
            total_elevation_gain_m=float(row.total_elevation_gain_m),
            average_pace_sec_per_km=pace_from_distance_and_time(total_distance_m, total_moving_time_s),
            best_pace_sec_per_km=float(row.best_pace) if row.best_pace is not None else None,
            average_heartrate=float(row.average_heartrate) if row.average_heartrate is not None else None,
        )

    def get_weekly_trends(
        self, db: Session, from_date: DateInput = None, to_date: DateInput = None
    ) -> List[WeeklyTrendPoint]:
        """Per-week totals keyed by Monday week start, oldest week first."""
        query = db.query(Activity.start_date, Activity.distance_m, Activity.moving_time_s)
        rows = self._apply_date_range(query, from_date, to_date).order_by(Activity.start_date.asc()).all()

        weeks = {}
        for start, distance_m, moving_time_s in rows:
            bucket = weeks.setdefault(week_start(start, self.tz), [0.0, 0, 0])
            bucket[0] += distance_m or 0.0
            bucket[1] += moving_time_s or 0
            bucket[2] += 1

        return [
            WeeklyTrendPoint(
                week_start=key,
                total_distance_m=distance,
                total_moving_time_s=moving,
                average_pace_sec_per_km=pace_from_distance_and_time(distance, moving),
                runs=runs,
            )
            for key, (distance, moving, runs) in sorted(weeks.items())
        ]

    def list_activities(self, db: Session, query: Optional[ActivityQuery] = None) -> PaginatedActivities:
        """
        One page of runs, filtered by date and sorted.

        Ties on the sort key fall back to start date, newest first. Page size
        is clamped to 1..MAX_PAGE_SIZE.
        """
        query = query or ActivityQuery()
        page = max(1, query.page or 1)
        page_size = min(MAX_PAGE_SIZE, max(1, query.page_size or 20))

        base = self._apply_date_range(db.query(Activity), query.from_date, query.to_date)
        total = base.count()

        sort_columns = {
            ActivitySortBy.DISTANCE: Activity.distance_m,
            ActivitySortBy.PACE: pace_expression(),
            ActivitySortBy.START_DATE: Activity.start_date,
        }
        sort_key = sort_columns[ActivitySortBy(query.sort_by)]
        ordered = sort_key.asc() if SortDirection(query.sort_dir) == SortDirection.ASC else sort_key.desc()

        rows = (
            base.order_by(ordered, Activity.start_date.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return PaginatedActivities(
            page=page,
            page_size=page_size,
            total=total,
            items=[self.to_run_activity(row) for row in rows],
        )

    def list_activities_in_range(
        self, db: Session, from_date: DateInput, to_date: DateInput
    ) -> List[RunActivityResponse]:
        """Every run in an inclusive calendar range, oldest first, unpaginated."""
        rows = (
            self._apply_date_range(db.query(Activity), from_date, to_date)
            .order_by(Activity.start_date.asc())
            .all()
        )
        return [self.to_run_activity(row) for row in rows]

    def get_activity_by_id(self, db: Session, strava_id: int) -> Optional[RunActivityResponse]:
        """Run detail with splits, or None when the Strava id is unknown."""
        activity = db.query(Activity).filter(Activity.strava_id == strava_id).first()
        if not activity:
            return None

        athlete_max_heartrate = db.query(func.max(Activity.max_heartrate)).scalar()
        return self.to_run_activity(
            activity,
            include_splits=True,
            athlete_max_heartrate=float(athlete_max_heartrate) if athlete_max_heartrate is not None else None,
        )

    def get_latest_start_date(self, db: Session) -> Optional[datetime]:
        return db.query(func.max(Activity.start_date)).scalar()

    def get_start_dates(self, db: Session) -> List[datetime]:
        return [row[0] for row in db.query(Activity.start_date).all()]

    def count_splits(self, db: Session, strava_id: int) -> int:
        return db.query(ActivitySplit).filter(ActivitySplit.activity_strava_id == strava_id).count()

    # ============== Analysis cache ==============

    def get_activity_analysis(self, db: Session, strava_id: int) -> Optional[ActivityAnalysisResponse]:
        record = db.get(ActivityAnalysis, strava_id)
        if not record:
            return None
        return ActivityAnalysisResponse(
            activity_id=record.activity_strava_id,
            content=record.content,
            generated_at=record.generated_at,
            cached=True,
        )

    def save_activity_analysis(self, db: Session, strava_id: int, content: str) -> ActivityAnalysisResponse:
        """Store generated content, overwriting any earlier analysis for the run."""
        generated_at = datetime.utcnow()
        try:
            record = db.get(ActivityAnalysis, strava_id)
            if record:
                record.content = content
                record.generated_at = generated_at
            else:
                db.add(ActivityAnalysis(
                    activity_strava_id=strava_id,
                    content=content,
                    generated_at=generated_at,
                ))
            db.commit()
        except Exception:
            db.rollback()
            raise

        return ActivityAnalysisResponse(
            activity_id=strava_id,
            content=content,
            generated_at=generated_at,
            cached=False,
        )


# Singleton instance for use across the application
run_repository = RunRepository()
