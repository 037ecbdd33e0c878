"""Training plan CRUD: one free-text plan per calendar date."""

import logging
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import TrainingPlanConflictError
from app.models.training_plan import TrainingPlan
from app.schemas.plan import TrainingPlanResponse
from app.services.units import parse_date_string

logger = logging.getLogger(__name__)

DateInput = Union[str, date]


def _as_date(value: DateInput) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date_string(value)


class TrainingPlanService:
    """Create, read, update and delete training plans keyed by date."""

    def create_training_plan(self, db: Session, plan_date: DateInput, plan_text: str) -> TrainingPlanResponse:
        """
        Create the plan for a date.

        Raises:
            TrainingPlanConflictError: If a plan already exists for that date
            ValueError: If the date is not YYYY-MM-DD
        """
        day = _as_date(plan_date)
        if db.query(TrainingPlan).filter(TrainingPlan.date == day).first():
            raise TrainingPlanConflictError(day.isoformat())

        now = datetime.utcnow()
        plan = TrainingPlan(date=day, plan_text=plan_text, created_at=now, updated_at=now)
        db.add(plan)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with another insert for the same date
            db.rollback()
            raise TrainingPlanConflictError(day.isoformat())
        db.refresh(plan)

        logger.info(f"Created training plan {plan.id} for {day.isoformat()}")
        return TrainingPlanResponse.model_validate(plan)

    def get_training_plan_by_date(self, db: Session, plan_date: DateInput) -> Optional[TrainingPlanResponse]:
        plan = db.query(TrainingPlan).filter(TrainingPlan.date == _as_date(plan_date)).first()
        return TrainingPlanResponse.model_validate(plan) if plan else None

    def update_training_plan(
        self, db: Session, plan_date: DateInput, plan_text: str
    ) -> Optional[TrainingPlanResponse]:
        """Replace the plan text in place; None when no plan exists for the date."""
        plan = db.query(TrainingPlan).filter(TrainingPlan.date == _as_date(plan_date)).first()
        if not plan:
            return None

        plan.plan_text = plan_text
        plan.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(plan)

        logger.info(f"Updated training plan for {plan.date.isoformat()}")
        return TrainingPlanResponse.model_validate(plan)

    def delete_training_plan(self, db: Session, plan_date: DateInput) -> bool:
        """Delete the plan for a date. Returns False when there was nothing to delete."""
        deleted = (
            db.query(TrainingPlan)
            .filter(TrainingPlan.date == _as_date(plan_date))
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted > 0

    def get_training_plans_by_range(
        self,
        db: Session,
        from_date: Optional[DateInput] = None,
        to_date: Optional[DateInput] = None,
    ) -> List[TrainingPlanResponse]:
        """Plans between two dates (inclusive, either side optional), newest first."""
        query = db.query(TrainingPlan)
        if from_date:
            query = query.filter(TrainingPlan.date >= _as_date(from_date))
        if to_date:
            query = query.filter(TrainingPlan.date <= _as_date(to_date))

        plans = query.order_by(TrainingPlan.date.desc()).all()
        return [TrainingPlanResponse.model_validate(plan) for plan in plans]


# Singleton instance for use across the application
training_plan_service = TrainingPlanService()
