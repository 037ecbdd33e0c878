"""Activities API router: run listing, run detail and AI analysis."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import NotConfiguredError
from app.schemas.activity import (
    ActivityAnalysisResponse,
    ActivityQuery,
    ActivitySortBy,
    AnalysisRequest,
    PaginatedActivities,
    RunActivityResponse,
    SortDirection,
)
from app.services.ai_service import ActivityAnalysisService, analysis_service, is_analysis_stale
from app.services.run_repository import run_repository
from app.services.training_plan_service import training_plan_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_analysis_service() -> ActivityAnalysisService:
    """Dependency provider for the analysis generator."""
    return analysis_service


@router.get("", response_model=PaginatedActivities)
async def list_activities(
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(20, description="Items per page, clamped to 1-100"),
    sort_by: ActivitySortBy = Query(ActivitySortBy.START_DATE),
    sort_dir: SortDirection = Query(SortDirection.DESC),
    from_date: Optional[str] = Query(None, alias="from", description="Inclusive start date (YYYY-MM-DD)"),
    to_date: Optional[str] = Query(None, alias="to", description="Inclusive end date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
) -> PaginatedActivities:
    """
    List runs with date filtering, sorting and pagination.

    Raises:
        HTTPException: 400 if a date is not YYYY-MM-DD
    """
    query = ActivityQuery(
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )
    try:
        return run_repository.list_activities(db, query)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{activity_id}", response_model=RunActivityResponse)
async def get_activity(
    activity_id: int,
    db: Session = Depends(get_db),
) -> RunActivityResponse:
    """
    Get run detail, including splits, zones and trend points.

    Raises:
        HTTPException: 404 if the run is not stored
    """
    activity = run_repository.get_activity_by_id(db, activity_id)
    if not activity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Activity with id {activity_id} not found",
        )
    return activity


@router.get("/{activity_id}/analysis", response_model=ActivityAnalysisResponse)
async def get_activity_analysis(
    activity_id: int,
    db: Session = Depends(get_db),
) -> ActivityAnalysisResponse:
    """Return the cached analysis for a run without generating one."""
    cached = run_repository.get_activity_analysis(db, activity_id)
    if not cached:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No analysis yet for this activity.",
        )
    return cached


@router.post("/{activity_id}/analysis", response_model=ActivityAnalysisResponse)
async def create_activity_analysis(
    activity_id: int,
    analysis_request: Optional[AnalysisRequest] = None,
    db: Session = Depends(get_db),
    analyzer: ActivityAnalysisService = Depends(get_analysis_service),
) -> ActivityAnalysisResponse:
    """
    Return the cached analysis, or generate and cache a new one.

    A new analysis is generated when forced, when none exists, or when the
    day's training plan changed after the cached one was written.

    Raises:
        HTTPException: 404 if the run is not stored
        HTTPException: 501 if AI analysis is not configured
        HTTPException: 502 if the model call fails
    """
    force = analysis_request.force if analysis_request else False

    activity = run_repository.get_activity_by_id(db, activity_id)
    if not activity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Activity with id {activity_id} not found",
        )

    plan = training_plan_service.get_training_plan_by_date(db, activity.local_date)
    cached = run_repository.get_activity_analysis(db, activity_id)
    if cached and not force and not is_analysis_stale(cached, plan):
        return cached

    try:
        content = await analyzer.generate(activity, plan)
    except NotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=e.message)
    except Exception as e:
        logger.error(f"Analysis generation failed for activity {activity_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to generate analysis: {str(e)}",
        )

    return run_repository.save_activity_analysis(db, activity_id, content)
