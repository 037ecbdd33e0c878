"""Dashboard API router: summary totals, weekly trends and filter options."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.activity import CalendarFilterOptions, SummaryMetrics, WeeklyTrendPoint
from app.services.calendar_service import calendar_service
from app.services.run_repository import run_repository

router = APIRouter()


@router.get("/summary", response_model=SummaryMetrics)
async def get_summary(
    from_date: Optional[str] = Query(None, alias="from", description="Inclusive start date (YYYY-MM-DD)"),
    to_date: Optional[str] = Query(None, alias="to", description="Inclusive end date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
) -> SummaryMetrics:
    """Run totals, average and best pace over an optional date range."""
    try:
        return run_repository.get_summary(db, from_date, to_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/trends/weekly", response_model=List[WeeklyTrendPoint])
async def get_weekly_trends(
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    db: Session = Depends(get_db),
) -> List[WeeklyTrendPoint]:
    """Per-week distance, time and pace, oldest week first."""
    try:
        return run_repository.get_weekly_trends(db, from_date, to_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/filters/calendar", response_model=CalendarFilterOptions)
async def get_calendar_filters(db: Session = Depends(get_db)) -> CalendarFilterOptions:
    return calendar_service.get_calendar_filter_options(db)
