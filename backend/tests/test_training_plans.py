"""Tests for training plan CRUD."""

from datetime import date

import pytest

from app.exceptions import ConflictError, TrainingPlanConflictError
from app.services.training_plan_service import TrainingPlanService


@pytest.fixture
def service():
    return TrainingPlanService()


def test_create_and_get(db_session, service):
    created = service.create_training_plan(db_session, "2026-01-15", "Easy 8km")

    fetched = service.get_training_plan_by_date(db_session, date(2026, 1, 15))
    assert fetched.id == created.id
    assert fetched.plan_text == "Easy 8km"
    assert fetched.created_at == fetched.updated_at


def test_one_plan_per_date(db_session, service):
    service.create_training_plan(db_session, "2026-01-15", "Easy 8km")

    with pytest.raises(TrainingPlanConflictError) as excinfo:
        service.create_training_plan(db_session, "2026-01-15", "Tempo 10km")

    assert isinstance(excinfo.value, ConflictError)
    assert "2026-01-15" in excinfo.value.message
    assert service.get_training_plan_by_date(db_session, "2026-01-15").plan_text == "Easy 8km"


def test_invalid_date_is_a_validation_error(db_session, service):
    with pytest.raises(ValueError):
        service.create_training_plan(db_session, "15/01/2026", "Easy 8km")


def test_update_bumps_updated_at(db_session, service):
    created = service.create_training_plan(db_session, "2026-01-15", "Easy 8km")

    updated = service.update_training_plan(db_session, "2026-01-15", "Easy 10km")

    assert updated.id == created.id
    assert updated.plan_text == "Easy 10km"
    assert updated.updated_at >= created.updated_at
    assert updated.created_at == created.created_at


def test_update_and_delete_missing_plan(db_session, service):
    assert service.update_training_plan(db_session, "2026-01-15", "anything") is None
    assert service.delete_training_plan(db_session, "2026-01-15") is False
    assert service.get_training_plan_by_date(db_session, "2026-01-15") is None


def test_delete(db_session, service):
    service.create_training_plan(db_session, "2026-01-15", "Easy 8km")

    assert service.delete_training_plan(db_session, "2026-01-15") is True
    assert service.get_training_plan_by_date(db_session, "2026-01-15") is None


def test_range_is_inclusive_and_newest_first(db_session, service):
    for day in ("2026-01-01", "2026-01-10", "2026-01-31", "2026-02-01"):
        service.create_training_plan(db_session, day, f"Plan {day}")

    plans = service.get_training_plans_by_range(db_session, "2026-01-01", "2026-01-31")

    assert [plan.date.isoformat() for plan in plans] == ["2026-01-31", "2026-01-10", "2026-01-01"]
    assert len(service.get_training_plans_by_range(db_session)) == 4
