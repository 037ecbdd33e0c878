"""Sync API router: pull new runs from Strava."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import NotConfiguredError, SyncInProgressError
from app.schemas.sync import SyncRequest, SyncStats
from app.services.strava_service import StravaAPIError
from app.services.sync_service import SyncService, sync_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_sync_service() -> SyncService:
    """Dependency provider for the process-wide sync orchestrator."""
    return sync_service


@router.post("", response_model=SyncStats)
async def run_sync(
    sync_request: Optional[SyncRequest] = None,
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
) -> SyncStats:
    """
    Sync runs from Strava.

    Without a body this is an incremental sync from the newest stored run.

    Raises:
        HTTPException: 409 if a sync is already running
        HTTPException: 400 if the from date is invalid
        HTTPException: 501 if Strava credentials are missing
        HTTPException: 502 if Strava keeps failing
    """
    sync_request = sync_request or SyncRequest()
    try:
        return await service.run_sync(db, full=sync_request.full, from_date=sync_request.from_date)
    except SyncInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=e.message)
    except StravaAPIError as e:
        logger.error(f"Strava sync failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to sync activities from Strava: {e.message}",
        )
