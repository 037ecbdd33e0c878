"""Training calendar: month grids joining plans with runs, and filter options."""

import calendar
import logging
from datetime import date, timedelta
from typing import Dict, List

from sqlalchemy.orm import Session

from app.schemas.activity import CalendarFilterOptions, RunActivityResponse
from app.schemas.plan import CompletionStatus, DailySummary, TrainingPlanResponse
from app.services.run_repository import RunRepository, run_repository
from app.services.training_plan_service import TrainingPlanService, training_plan_service
from app.services.units import to_calendar_date

logger = logging.getLogger(__name__)


def completion_status(plan, activities: list) -> CompletionStatus:
    """no_plan without a plan, completed with at least one run, otherwise missed."""
    if plan is None:
        return CompletionStatus.NO_PLAN
    if not activities:
        return CompletionStatus.MISSED
    return CompletionStatus.COMPLETED


def month_days(year: int, month: int) -> List[date]:
    """
    Every date of a month, honouring leap years.

    Raises:
        ValueError: If month is outside 1..12 or year outside 1..9999
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}. Expected 1-12.")
    if not 1 <= year <= 9999:
        raise ValueError(f"Invalid year: {year}.")
    _, days_in_month = calendar.monthrange(year, month)
    first = date(year, month, 1)
    return [first + timedelta(days=offset) for offset in range(days_in_month)]


class CalendarService:
    """Builds the training calendar views."""

    def __init__(
        self,
        runs: RunRepository = run_repository,
        plans: TrainingPlanService = training_plan_service,
    ):
        self.runs = runs
        self.plans = plans

    def get_daily_summary(self, db: Session, year: int, month: int) -> List[DailySummary]:
        """
        One DailySummary per date of the month.

        Plans and runs for the whole month are loaded with one query each and
        joined in memory on the calendar-date key.
        """
        days = month_days(year, month)
        first, last = days[0], days[-1]

        plans_by_date: Dict[str, TrainingPlanResponse] = {
            plan.date.isoformat(): plan
            for plan in self.plans.get_training_plans_by_range(db, first, last)
        }

        runs_by_date: Dict[str, List[RunActivityResponse]] = {}
        for run in self.runs.list_activities_in_range(db, first, last):
            runs_by_date.setdefault(run.local_date, []).append(run)

        summaries = []
        for day in days:
            key = day.isoformat()
            plan = plans_by_date.get(key)
            day_runs = runs_by_date.get(key, [])
            summaries.append(DailySummary(
                date=key,
                plan=plan,
                activities=day_runs,
                completion_status=completion_status(plan, day_runs),
            ))

        logger.debug(
            f"Daily summary {year}-{month:02d}: {len(plans_by_date)} plans, "
            f"{sum(len(items) for items in runs_by_date.values())} runs"
        )
        return summaries

    def get_calendar_filter_options(self, db: Session) -> CalendarFilterOptions:
        """Years (newest first) and, per year, the months (ascending) that contain runs."""
        months_by_year: Dict[int, set] = {}
        for start in self.runs.get_start_dates(db):
            local_day = to_calendar_date(start, self.runs.tz)
            year, month = int(local_day[:4]), int(local_day[5:7])
            months_by_year.setdefault(year, set()).add(month)

        years = sorted(months_by_year, reverse=True)
        return CalendarFilterOptions(
            years=years,
            months_by_year={str(year): sorted(months_by_year[year]) for year in years},
        )


# Singleton instance for use across the application
calendar_service = CalendarService()
