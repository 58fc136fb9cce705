import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from strava_mcp.client import StravaClient

from .cache import TTLCache
from .deps import get_cache, get_strava_client
from .services import dashboard_service

logger = logging.getLogger(__name__)

router = APIRouter()

SkipCache = Query(False, alias="skipCache", description="Bypass the cache lookup (the fresh result is still cached)")


@router.get("/stats")
async def get_stats(
    skip_cache: bool = SkipCache,
    client: StravaClient = Depends(get_strava_client),
    cache: TTLCache = Depends(get_cache),
):
    return await dashboard_service.get_stats(client, cache, skip_cache=skip_cache)


@router.get("/activities")
async def get_activities(
    days: int = Query(7, ge=1, le=365),
    skip_cache: bool = SkipCache,
    client: StravaClient = Depends(get_strava_client),
    cache: TTLCache = Depends(get_cache),
):
    return await dashboard_service.get_activities(client, cache, days=days, skip_cache=skip_cache)


@router.get("/performance")
async def get_performance(
    skip_cache: bool = SkipCache,
    client: StravaClient = Depends(get_strava_client),
    cache: TTLCache = Depends(get_cache),
):
    return await dashboard_service.get_performance(client, cache, skip_cache=skip_cache)


@router.get("/trends")
async def get_trends(
    period: str = Query("week"),
    skip_cache: bool = SkipCache,
    client: StravaClient = Depends(get_strava_client),
    cache: TTLCache = Depends(get_cache),
):
    return await dashboard_service.get_trends(client, cache, period=period, skip_cache=skip_cache)


@router.post("/refresh")
async def refresh_dashboard(
    days: int = Query(7, ge=1, le=365),
    period: str = Query("week"),
    client: StravaClient = Depends(get_strava_client),
    cache: TTLCache = Depends(get_cache),
):
    """Re-fetch all four dashboard cards at once."""
    logger.info(f"Refreshing dashboard (days={days}, period={period})")
    return await dashboard_service.refresh_all(client, cache, days=days, period=period)


@router.get("/cache")
def cache_stats(cache: TTLCache = Depends(get_cache)):
    return cache.stats()


@router.delete("/cache")
def clear_cache(pattern: Optional[str] = None, cache: TTLCache = Depends(get_cache)):
    if not pattern:
        cache.clear()
        return {"cleared": "all", **cache.stats()}
    try:
        removed = cache.clear_pattern(pattern)
    except re.error as e:
        raise HTTPException(status_code=400, detail=f"Invalid cache pattern: {str(e)}")
    return {"cleared": removed, **cache.stats()}
