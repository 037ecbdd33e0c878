"""Tests for run analysis prompts, staleness and the Gemini wrapper."""

from datetime import date, datetime, timedelta

import pytest

from app.exceptions import NotConfiguredError
from app.schemas.activity import ActivityAnalysisResponse, RunActivityResponse, RunSplitResponse
from app.schemas.plan import TrainingPlanResponse
from app.services.ai_service import (
    ActivityAnalysisService,
    build_prompt,
    format_duration,
    format_pace,
    is_analysis_stale,
)

GENERATED_AT = datetime(2026, 1, 1, 12, 0)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, text="## Summary\nGood run."):
        self.text = text
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        return FakeResponse(self.text)


def make_run(splits=10):
    return RunActivityResponse(
        strava_id=42,
        name="Tempo Tuesday",
        start_date=datetime(2026, 1, 1, 8, 0),
        start_date_local="2026-01-01T09:00:00Z",
        local_date="2026-01-01",
        distance_m=10000,
        moving_time_s=3000,
        elapsed_time_s=3100,
        total_elevation_gain_m=55.4,
        pace_sec_per_km=300.0,
        average_heartrate=158.4,
        max_heartrate=None,
        splits=[
            RunSplitResponse(split_index=index, distance_m=1000, elapsed_time_s=300, pace_sec_per_km=300.0)
            for index in range(1, splits + 1)
        ],
        updated_at=GENERATED_AT,
    )


def make_plan(updated_at=GENERATED_AT):
    return TrainingPlanResponse(
        id=1,
        date=date(2026, 1, 1),
        plan_text="Tempo 10km at 5:00/km",
        created_at=GENERATED_AT - timedelta(days=1),
        updated_at=updated_at,
    )


def make_analysis():
    return ActivityAnalysisResponse(activity_id=42, content="cached", generated_at=GENERATED_AT, cached=True)


def test_formatting_helpers():
    assert format_pace(305.4) == "5:05 /km"
    assert format_pace(None) == "--"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_duration(125) == "2m 5s"


def test_prompt_without_plan():
    prompt = build_prompt(make_run())

    assert "exactly these 4 headings" in prompt
    assert "## Plan completion" not in prompt
    assert "Distance: 10.00 km" in prompt
    assert "Pace: 5:00 /km" in prompt
    assert "Max heart rate: -- bpm" in prompt
    assert "- Km 8:" in prompt
    assert "- Km 9:" not in prompt


def test_prompt_with_plan():
    prompt = build_prompt(make_run(splits=0), make_plan())

    assert "exactly these 5 headings" in prompt
    assert "## Plan completion" in prompt
    assert "Tempo 10km at 5:00/km" in prompt
    assert "- No split data" in prompt


def test_staleness():
    analysis = make_analysis()

    assert not is_analysis_stale(analysis, None)
    assert not is_analysis_stale(None, make_plan())
    assert not is_analysis_stale(analysis, make_plan(updated_at=GENERATED_AT - timedelta(minutes=5)))
    assert is_analysis_stale(analysis, make_plan(updated_at=GENERATED_AT + timedelta(minutes=5)))


@pytest.mark.asyncio
async def test_generate_uses_model():
    model = FakeModel(text="  ## Summary\nGood run.  ")
    service = ActivityAnalysisService(model=model)

    content = await service.generate(make_run(), make_plan())

    assert content == "## Summary\nGood run."
    assert "## Plan completion" in model.prompts[0]


@pytest.mark.asyncio
async def test_generate_rejects_empty_output():
    service = ActivityAnalysisService(model=FakeModel(text="   "))

    with pytest.raises(RuntimeError):
        await service.generate(make_run())


@pytest.mark.asyncio
async def test_not_configured_without_api_key():
    service = ActivityAnalysisService(api_key="")

    assert not service.is_configured
    with pytest.raises(NotConfiguredError):
        await service.generate(make_run())
