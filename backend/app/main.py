"""FastAPI application entry point for the Run Dashboard API."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import create_tables
from app.routers import activities, calendar, dashboard, plans, sync

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: Create database tables
    create_tables()
    logger.info("Run Dashboard API started")
    yield


app = FastAPI(
    title="Run Dashboard API",
    description="Backend API for the personal running dashboard - Strava sync, run metrics, training calendar",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for the local dashboard frontend
cors_origins = [
    settings.FRONTEND_URL,
    "http://localhost:5173",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(dashboard.router, prefix="/api", tags=["Dashboard"])
app.include_router(activities.router, prefix="/api/activities", tags=["Activities"])
app.include_router(plans.router, prefix="/api/plans", tags=["Training Plans"])
app.include_router(calendar.router, prefix="/api/calendar", tags=["Calendar"])
app.include_router(sync.router, prefix="/api/sync", tags=["Sync"])


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Run Dashboard API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health", tags=["Health"])
@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"ok": True, "now": datetime.now(timezone.utc).isoformat()}
