"""AI run analysis using Google Gemini.

Turns a stored run (and the training plan for its day, when one exists)
into a short Markdown coaching review. Generated text is cached per run by
RunRepository; this module only builds prompts and calls the model.
"""

import logging
from typing import Any, List, Optional

import google.generativeai as genai

from app.config import settings
from app.exceptions import NotConfiguredError
from app.schemas.activity import ActivityAnalysisResponse, RunActivityResponse
from app.schemas.plan import TrainingPlanResponse

logger = logging.getLogger(__name__)

# Only the opening kilometres go into the prompt
MAX_PROMPT_SPLITS = 8


def format_distance(meters: float) -> str:
    return f"{meters / 1000:.2f} km"


def format_duration(total_seconds: int) -> str:
    hours, remainder = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    return f"{minutes}m {seconds}s"


def format_pace(pace_sec_per_km: Optional[float]) -> str:
    """Pace as m:ss /km, or -- when unknown."""
    if not pace_sec_per_km:
        return "--"
    rounded = int(round(pace_sec_per_km))
    return f"{rounded // 60}:{rounded % 60:02d} /km"


def _format_bpm(value: Optional[float]) -> str:
    return "--" if value is None else f"{int(round(value))}"


def build_prompt(activity: RunActivityResponse, plan: Optional[TrainingPlanResponse] = None) -> str:
    """
    Build the coaching prompt for one run.

    With a plan the model is asked for an extra "Plan completion" section
    comparing what was planned against what was run.
    """
    headings = ["## Summary", "## Highlights", "## Risks"]
    if plan:
        headings.append("## Plan completion")
    headings.append("## Next session")

    splits = (activity.splits or [])[:MAX_PROMPT_SPLITS]
    if splits:
        split_lines = [
            f"- Km {split.split_index}: {int(round(split.distance_m))}m, {split.elapsed_time_s}s, "
            f"pace {f'{int(round(split.pace_sec_per_km))}s/km' if split.pace_sec_per_km else '--'}"
            for split in splits
        ]
    else:
        split_lines = ["- No split data"]

    parts: List[str] = [
        "You are an experienced running coach. Review this run for the athlete.",
        f"Answer in Markdown with exactly these {len(headings)} headings:",
        *headings,
        "Keep each section to 2-4 sentences; give 3 actionable suggestions for the next session.",
        "",
        f"Activity: {activity.name}",
        f"Start: {activity.start_date_local}",
        f"Distance: {format_distance(activity.distance_m)}",
        f"Moving time: {format_duration(activity.moving_time_s)}",
        f"Pace: {format_pace(activity.pace_sec_per_km)}",
        f"Elevation gain: {int(round(activity.total_elevation_gain_m))}m",
        f"Average heart rate: {_format_bpm(activity.average_heartrate)} bpm",
        f"Max heart rate: {_format_bpm(activity.max_heartrate)} bpm",
        "",
        "Splits:",
        *split_lines,
    ]

    if plan:
        parts.extend([
            "",
            "[Training plan]",
            plan.plan_text,
            "",
            'In "## Plan completion" assess:',
            "- planned targets vs what was actually run",
            "- completion rate (distance, pace, etc.)",
            "- adjustments for the coming days",
        ])

    return "\n".join(parts)


def is_analysis_stale(
    analysis: Optional[ActivityAnalysisResponse],
    plan: Optional[TrainingPlanResponse],
) -> bool:
    """True when the day's plan was edited after the analysis was generated."""
    if analysis is None or plan is None:
        return False
    return plan.updated_at > analysis.generated_at


class ActivityAnalysisService:
    """Gemini-powered run analysis."""

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, model: Any = None):
        """
        Initialize with Gemini configuration.

        Args:
            api_key: Overrides GEMINI_API_KEY; empty means not configured
            model_name: Overrides GEMINI_MODEL
            model: Pre-built model exposing ``generate_content_async``
        """
        key = settings.GEMINI_API_KEY if api_key is None else api_key
        if model is not None:
            self.model = model
        elif key:
            genai.configure(api_key=key)
            self.model = genai.GenerativeModel(model_name or settings.GEMINI_MODEL)
        else:
            self.model = None

    @property
    def is_configured(self) -> bool:
        return self.model is not None

    async def generate(
        self,
        activity: RunActivityResponse,
        plan: Optional[TrainingPlanResponse] = None,
    ) -> str:
        """
        Generate Markdown feedback for a run.

        Raises:
            NotConfiguredError: If no Gemini API key is configured
            RuntimeError: If the model returns no text
        """
        if not self.is_configured:
            raise NotConfiguredError("AI analysis is not configured on the server.")

        prompt = build_prompt(activity, plan)
        logger.info(f"Generating analysis for activity {activity.strava_id} (plan={'yes' if plan else 'no'})")

        response = await self.model.generate_content_async(prompt)
        text = (response.text or "").strip()
        if not text:
            raise RuntimeError("Gemini returned empty analysis content.")
        return text


# Singleton instance for use across the application
analysis_service = ActivityAnalysisService()
