"""Training plans API router: one free-text plan per date."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import TrainingPlanConflictError
from app.schemas.plan import TrainingPlanCreate, TrainingPlanResponse, TrainingPlanUpdate
from app.services.training_plan_service import training_plan_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found(plan_date: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Training plan for {plan_date} not found",
    )


# ============== Plan CRUD Endpoints ==============

@router.get("", response_model=List[TrainingPlanResponse])
async def list_plans(
    from_date: Optional[str] = Query(None, alias="from", description="Inclusive start date (YYYY-MM-DD)"),
    to_date: Optional[str] = Query(None, alias="to", description="Inclusive end date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
) -> List[TrainingPlanResponse]:
    """List plans in a date range, newest first."""
    try:
        return training_plan_service.get_training_plans_by_range(db, from_date, to_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("", response_model=TrainingPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan_data: TrainingPlanCreate,
    db: Session = Depends(get_db),
) -> TrainingPlanResponse:
    """
    Create the plan for a date.

    Raises:
        HTTPException: 409 if a plan already exists for that date
    """
    try:
        return training_plan_service.create_training_plan(db, plan_data.date, plan_data.plan_text)
    except TrainingPlanConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


@router.get("/{plan_date}", response_model=TrainingPlanResponse)
async def get_plan(
    plan_date: str,
    db: Session = Depends(get_db),
) -> TrainingPlanResponse:
    try:
        plan = training_plan_service.get_training_plan_by_date(db, plan_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not plan:
        raise _not_found(plan_date)
    return plan


@router.put("/{plan_date}", response_model=TrainingPlanResponse)
async def update_plan(
    plan_date: str,
    plan_data: TrainingPlanUpdate,
    db: Session = Depends(get_db),
) -> TrainingPlanResponse:
    """Replace the plan text for a date."""
    try:
        plan = training_plan_service.update_training_plan(db, plan_date, plan_data.plan_text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not plan:
        raise _not_found(plan_date)
    return plan


@router.delete("/{plan_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(
    plan_date: str,
    db: Session = Depends(get_db),
) -> None:
    """
    Delete the plan for a date.

    Raises:
        HTTPException: 404 if there was no plan to delete
    """
    try:
        deleted = training_plan_service.delete_training_plan(db, plan_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not deleted:
        raise _not_found(plan_date)
    logger.info(f"Deleted training plan for {plan_date}")
