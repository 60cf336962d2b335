"""Today's games — passthrough to the provider's schedule API."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from liverelay.api.deps import get_schedule
from liverelay.services.schedule import ScheduleClient, ScheduleError

logger = structlog.get_logger()
router = APIRouter()


@router.get("/games")
async def list_games(schedule: ScheduleClient = Depends(get_schedule)):
    """List today's events with their tracked event ids."""
    try:
        return await schedule.todays_events()
    except ScheduleError as e:
        logger.error("schedule.failed", error=str(e))
        raise HTTPException(status_code=502, detail="Failed to fetch MLB games")
