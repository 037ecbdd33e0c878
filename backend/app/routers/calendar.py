"""Calendar API router: the month grid of plans and runs."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.plan import DailySummary
from app.services.calendar_service import calendar_service

router = APIRouter()


@router.get("/daily-summary", response_model=List[DailySummary])
async def get_daily_summary(
    year: int = Query(..., description="Calendar year"),
    month: int = Query(..., description="Calendar month, 1-12"),
    db: Session = Depends(get_db),
) -> List[DailySummary]:
    """
    One entry per day of the month with its plan, runs and completion status.

    Raises:
        HTTPException: 400 if the month is outside 1-12
    """
    try:
        return calendar_service.get_daily_summary(db, year, month)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
