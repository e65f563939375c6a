"""Statistics routes."""

from datetime import datetime
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..config import Settings, get_settings
from ..constants import STOOL_TYPES
from ..models import StatsSummary, StoolType
from ..session import CurrentSession
from ..stats import summarize_stats

router = APIRouter(tags=["stats"])


def resolve_now(tz: str | None, settings: Settings) -> datetime:
    """Current time in the requested IANA zone (default from settings)."""
    name = tz or settings.default_timezone
    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown timezone: {name}",
        )
    return datetime.now(zone)


@router.get("/stats", response_model=StatsSummary)
async def get_stats(
    session: CurrentSession,
    settings: Annotated[Settings, Depends(get_settings)],
    tz: str | None = Query(default=None, description="IANA zone used for days and hours"),
):
    """Streak, averages, time-of-day pattern and health score for the user's logs."""
    return summarize_stats(session.logs.logs, resolve_now(tz, settings))


@router.get("/stool-types", response_model=list[StoolType])
async def list_stool_types():
    """The Bristol scale catalogue."""
    return list(STOOL_TYPES)
