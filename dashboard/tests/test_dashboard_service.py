from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from dashboard.services import dashboard_service
from dashboard.services.dashboard_service import (
    aggregate_trends,
    cached,
    compute_training_load,
    filter_recent,
    period_start,
    pick_totals,
)
from strava_mcp.schemas import ActivityStats, AthleteZones, SummaryActivity

from dashboard_fakes import ConcurrencyProbe, iso_days_ago
from strava_fakes import stats_payload, summary_activity, totals

NOW = datetime(2024, 5, 8, 12, 0, tzinfo=timezone.utc)
NEW_YORK = ZoneInfo("America/New_York")


def activity(activity_id, start_date, **overrides):
    return SummaryActivity.model_validate(summary_activity(activity_id, start_date=start_date, **overrides))


def test_pick_totals_prefers_rides_per_period():
    stats = ActivityStats.model_validate(stats_payload(
        recent_ride_totals=totals(count=0),
        recent_run_totals=totals(count=3, distance=15000.0),
        ytd_ride_totals=totals(count=12, distance=400000.0),
        ytd_run_totals=totals(count=20, distance=100000.0),
    ))

    result = pick_totals(stats)

    assert result["recent"]["count"] == 3
    assert result["recent"]["distance"] == 15000.0
    assert result["ytd"]["count"] == 12
    assert result["all_time"]["count"] == 0


def test_filter_recent_keeps_activities_after_cutoff():
    activities = [
        activity(1, iso_days_ago(1, NOW)),
        activity(2, iso_days_ago(6.9, NOW)),
        activity(3, iso_days_ago(8, NOW)),
    ]

    assert [a.id for a in filter_recent(activities, 7, now=NOW)] == [1, 2]


def test_training_load():
    activities = [
        activity(1, iso_days_ago(1, NOW), moving_time=7200),
        activity(2, iso_days_ago(10, NOW), moving_time=14400),
        activity(3, iso_days_ago(40, NOW), moving_time=36000),
    ]

    load = compute_training_load(activities, now=NOW, tz=NEW_YORK)

    assert load == {"acute": 2.0, "chronic": 1.5, "ratio": 1.33}


def test_training_load_without_history():
    assert compute_training_load([], now=NOW, tz=NEW_YORK) == {"acute": 0.0, "chronic": 0.0, "ratio": 0}


def test_period_start():
    end = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)

    assert period_start("week", end) == datetime(2024, 3, 24, 12, 0, tzinfo=timezone.utc)
    assert period_start("month", end) == datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc)
    assert period_start("year", end) == datetime(2023, 3, 31, 12, 0, tzinfo=timezone.utc)


def test_weekly_trends_bucket_by_local_day():
    start = period_start("week", NOW)
    activities = [
        # 22:00 on May 2nd in New York
        activity(1, "2024-05-03T02:00:00Z", distance=10000.0, total_elevation_gain=100.0),
        activity(2, "2024-05-02T14:00:00Z", distance=5000.0, total_elevation_gain=50.0),
        activity(3, "2024-05-06T14:00:00Z", distance=20000.0, total_elevation_gain=0.0),
    ]

    trends = aggregate_trends(activities, "week", start, NOW, tz=NEW_YORK)

    assert [t["date"] for t in trends] == [f"2024-05-0{day}" for day in range(1, 9)]
    by_date = {t["date"]: t for t in trends}
    assert by_date["2024-05-02"] == {"date": "2024-05-02", "distance": 15000.0, "elevation": 150.0, "activity_count": 2}
    assert by_date["2024-05-03"]["activity_count"] == 0
    assert by_date["2024-05-06"]["distance"] == 20000.0


def test_yearly_trends_bucket_by_month():
    start = period_start("year", NOW)
    activities = [
        activity(1, "2023-12-31T23:30:00Z", distance=1000.0),
        activity(2, "2024-01-15T12:00:00Z", distance=2000.0),
    ]

    trends = aggregate_trends(activities, "year", start, NOW, tz=NEW_YORK)

    assert len(trends) == 13
    assert trends[0]["date"] == "2023-05"
    assert trends[-1]["date"] == "2024-05"
    by_month = {t["date"]: t for t in trends}
    assert by_month["2023-12"]["distance"] == 1000.0
    assert by_month["2024-01"]["distance"] == 2000.0


@pytest.mark.asyncio
async def test_cached_skip_bypasses_lookup_but_stores(cache):
    fetches = []

    async def fetch():
        fetches.append(1)
        return {"n": len(fetches)}

    assert await cached(cache, "stats", 60, fetch) == {"n": 1}
    assert await cached(cache, "stats", 60, fetch) == {"n": 1}
    assert await cached(cache, "stats", 60, fetch, skip_cache=True) == {"n": 2}
    assert await cached(cache, "stats", 60, fetch) == {"n": 2}
    assert len(fetches) == 2


@pytest.mark.asyncio
async def test_unknown_trend_period_falls_back_to_week(cache):
    probe = ConcurrencyProbe(stats=None, zones=None, activities=[])

    result = await dashboard_service.get_trends(probe, cache, period="decade")

    assert len(result["trends"]) == 8
    assert cache.stats()["keys"] == ["trends:week"]


@pytest.mark.asyncio
async def test_refresh_all_fetches_concurrently_and_fills_cache(cache):
    probe = ConcurrencyProbe(
        stats=ActivityStats.model_validate(stats_payload()),
        zones=AthleteZones.model_validate({"heart_rate": {"custom_zones": False, "zones": [{"min": 0, "max": 120}]}}),
        activities=[activity(1, iso_days_ago(1))],
    )
    cache.set("stats", "stale")

    result = await dashboard_service.refresh_all(probe, cache, days=14, period="month")

    assert set(result) == {"stats", "activities", "performance", "trends"}
    assert probe.max_in_flight > 1
    assert cache.get("stats") == result["stats"]
    assert sorted(cache.stats()["keys"]) == ["activities:14", "performance", "stats", "trends:month"]
    assert result["performance"]["hrZones"] == [{"min": 0, "max": 120}]
    assert result["performance"]["powerZones"] == []
    assert [a["id"] for a in result["activities"]["activities"]] == [1]
