"""API routers package."""

from app.routers import activities, calendar, dashboard, plans, sync

__all__ = ["activities", "calendar", "dashboard", "plans", "sync"]
