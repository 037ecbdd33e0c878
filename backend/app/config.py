"""Application configuration loaded from environment variables."""

from datetime import timedelta, timezone
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./run_dashboard.db"

    # Strava credentials (single user, no OAuth dance)
    STRAVA_ACCESS_TOKEN: str = ""
    STRAVA_CLIENT_ID: str = ""
    STRAVA_CLIENT_SECRET: str = ""
    STRAVA_REFRESH_TOKEN: str = ""

    # Strava sync behaviour
    STRAVA_TARGET_ACTIVITY_TYPE: str = "Run"
    STRAVA_PAGE_SIZE: int = 100
    STRAVA_MAX_ATTEMPTS: int = 20
    STRAVA_BACKOFF_BASE_SECONDS: float = 2.0
    STRAVA_BACKOFF_CAP_SECONDS: float = 60.0
    STRAVA_LOW_QUOTA_THRESHOLD: int = 2
    STRAVA_LOW_QUOTA_PAUSE_SECONDS: float = 3.0
    STRAVA_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Calendar bucketing: every date projection uses this one offset
    TIMEZONE_OFFSET_MINUTES: int = 0

    # Google Gemini AI
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Frontend URL for CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Strava API URLs
    STRAVA_TOKEN_URL: str = "https://www.strava.com/oauth/token"
    STRAVA_API_BASE_URL: str = "https://www.strava.com/api/v3"

    @property
    def calendar_timezone(self) -> timezone:
        """Fixed timezone used for calendar-day projections."""
        return timezone(timedelta(minutes=self.TIMEZONE_OFFSET_MINUTES))

    @property
    def can_refresh_strava_token(self) -> bool:
        return bool(
            self.STRAVA_CLIENT_ID and self.STRAVA_CLIENT_SECRET and self.STRAVA_REFRESH_TOKEN
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Create a global settings instance for direct import
settings = get_settings()
