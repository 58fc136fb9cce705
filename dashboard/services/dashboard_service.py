"""
Data behind the dashboard cards: stats, recent activities, performance and trends.
Each fetch goes through the TTL cache; skip_cache bypasses the lookup but still stores the fresh result.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from strava_mcp.client import StravaClient
from strava_mcp.formatters import parse_strava_date
from strava_mcp.schemas import ActivityStats, ActivityTotal, SummaryActivity

from ..cache import TTLCache
from ..config import settings

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "year")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def cached(
    cache: TTLCache,
    key: str,
    ttl: float,
    fetch: Callable[[], Awaitable[Any]],
    skip_cache: bool = False,
) -> Any:
    if not skip_cache:
        hit = cache.get(key)
        if hit is not None:
            logger.info(f"Cache hit: {key}")
            return hit
    logger.info(f"Cache {'bypassed' if skip_cache else 'miss'}: {key}")
    data = await fetch()
    cache.set(key, data, ttl)
    return data


# Pure helpers

def _totals(preferred: ActivityTotal, fallback: ActivityTotal) -> Dict[str, Any]:
    chosen = preferred if preferred.count > 0 else fallback
    return chosen.model_dump(mode="json")


def pick_totals(stats: ActivityStats) -> Dict[str, Any]:
    """Ride totals per period, or run totals for athletes with no rides in that period."""
    return {
        "recent": _totals(stats.recent_ride_totals, stats.recent_run_totals),
        "ytd": _totals(stats.ytd_ride_totals, stats.ytd_run_totals),
        "all_time": _totals(stats.all_ride_totals, stats.all_run_totals),
    }


def filter_recent(activities: List[SummaryActivity], days: int, now: Optional[datetime] = None) -> List[SummaryActivity]:
    cutoff = (now or _utcnow()) - timedelta(days=days)
    return [a for a in activities if parse_strava_date(a.start_date) > cutoff]


def compute_training_load(
    activities: List[SummaryActivity],
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> Dict[str, float]:
    """
    Acute load = moving hours over the last 7 days, chronic load = weekly average
    over the last 28 days, ratio = acute / chronic (0 without a chronic base).
    """
    tz = tz or ZoneInfo(settings.DASHBOARD_TIMEZONE)
    local_now = (now or _utcnow()).astimezone(tz)

    acute_seconds = 0
    chronic_seconds = 0
    for activity in activities:
        age = local_now - parse_strava_date(activity.start_date).astimezone(tz)
        moving = activity.moving_time or 0
        if age <= timedelta(days=7):
            acute_seconds += moving
        if age <= timedelta(days=28):
            chronic_seconds += moving

    acute = acute_seconds / 3600
    chronic = chronic_seconds / 3600 / 4
    return {
        "acute": round(acute, 1),
        "chronic": round(chronic, 1),
        "ratio": round(acute / chronic, 2) if chronic > 0 else 0,
    }


def period_start(period: str, end: datetime) -> datetime:
    if period == "month":
        return end - relativedelta(months=1)
    if period == "year":
        return end - relativedelta(years=1)
    return end - timedelta(days=7)


def _bucket_dates(period: str, start: date, end: date) -> List[str]:
    keys = []
    if period == "year":
        current = start.replace(day=1)
        while current <= end:
            keys.append(current.strftime("%Y-%m"))
            current += relativedelta(months=1)
    else:
        current = start
        while current <= end:
            keys.append(current.strftime("%Y-%m-%d"))
            current += timedelta(days=1)
    return keys


def aggregate_trends(
    activities: List[SummaryActivity],
    period: str,
    start: datetime,
    end: datetime,
    tz: Optional[ZoneInfo] = None,
) -> List[Dict[str, Any]]:
    """
    Distance, elevation and activity count per local day (per month for "year").
    Every bucket between start and end is present, empty ones with zeros.
    """
    tz = tz or ZoneInfo(settings.DASHBOARD_TIMEZONE)
    key_format = "%Y-%m" if period == "year" else "%Y-%m-%d"

    buckets: Dict[str, Dict[str, float]] = {}
    for activity in activities:
        key = parse_strava_date(activity.start_date).astimezone(tz).strftime(key_format)
        bucket = buckets.setdefault(key, {"distance": 0, "elevation": 0, "count": 0})
        bucket["distance"] += activity.distance or 0
        bucket["elevation"] += activity.total_elevation_gain or 0
        bucket["count"] += 1

    trends = []
    for key in _bucket_dates(period, start.astimezone(tz).date(), end.astimezone(tz).date()):
        bucket = buckets.get(key, {"distance": 0, "elevation": 0, "count": 0})
        trends.append({
            "date": key,
            "distance": bucket["distance"],
            "elevation": bucket["elevation"],
            "activity_count": bucket["count"],
        })
    return trends


# Cached fetches

async def get_stats(client: StravaClient, cache: TTLCache, skip_cache: bool = False) -> Dict[str, Any]:
    async def fetch():
        athlete = await client.get_authenticated_athlete()
        stats = await client.get_athlete_stats(athlete.id)
        return pick_totals(stats)

    return await cached(cache, "stats", settings.CACHE_TTL_STATS, fetch, skip_cache)


async def get_activities(client: StravaClient, cache: TTLCache, days: int = 7, skip_cache: bool = False) -> Dict[str, Any]:
    async def fetch():
        activities = await client.get_recent_activities(per_page=settings.RECENT_ACTIVITIES_COUNT)
        recent = filter_recent(activities, days)
        logger.info(f"{len(recent)} of {len(activities)} recent activities fall within {days} days")
        return {"activities": [a.model_dump(mode="json") for a in recent]}

    return await cached(cache, f"activities:{days}", settings.CACHE_TTL_ACTIVITIES, fetch, skip_cache)


async def get_performance(client: StravaClient, cache: TTLCache, skip_cache: bool = False) -> Dict[str, Any]:
    async def fetch():
        zones, activities = await asyncio.gather(
            client.get_athlete_zones(),
            client.get_recent_activities(per_page=settings.RECENT_ACTIVITIES_COUNT),
        )
        hr_zones = zones.heart_rate.zones if zones.heart_rate else []
        power_zones = zones.power.zones if zones.power else []
        return {
            "hrZones": [z.model_dump(mode="json", exclude_none=True) for z in hr_zones],
            "powerZones": [z.model_dump(mode="json", exclude_none=True) for z in power_zones],
            "trainingLoad": compute_training_load(activities),
        }

    return await cached(cache, "performance", settings.CACHE_TTL_PERFORMANCE, fetch, skip_cache)


async def get_trends(client: StravaClient, cache: TTLCache, period: str = "week", skip_cache: bool = False) -> Dict[str, Any]:
    if period not in PERIODS:
        period = "week"

    async def fetch():
        end = _utcnow()
        start = period_start(period, end)
        activities = await client.list_activities_page(
            page=1,
            per_page=settings.TRENDS_PAGE_SIZE,
            before=int(end.timestamp()),
            after=int(start.timestamp()),
        )
        return {"trends": aggregate_trends(activities, period, start, end)}

    return await cached(cache, f"trends:{period}", settings.CACHE_TTL_TRENDS, fetch, skip_cache)


async def refresh_all(client: StravaClient, cache: TTLCache, days: int = 7, period: str = "week") -> Dict[str, Any]:
    """Re-fetch every card concurrently, ignoring (and then overwriting) cached values."""
    stats, activities, performance, trends = await asyncio.gather(
        get_stats(client, cache, skip_cache=True),
        get_activities(client, cache, days=days, skip_cache=True),
        get_performance(client, cache, skip_cache=True),
        get_trends(client, cache, period=period, skip_cache=True),
    )
    return {"stats": stats, "activities": activities, "performance": performance, "trends": trends}
