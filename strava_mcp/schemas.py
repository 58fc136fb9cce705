"""
Declarative response schemas, one per Strava resource.
Models are immutable snapshots; fields Strava adds later are kept as extras.
Optional fields may be missing or null here and render as N/A at formatting time.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from .errors import SchemaError

logger = logging.getLogger(__name__)


class StravaModel(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class MetaAthlete(StravaModel):
    id: int
    resource_state: Optional[int] = None


class MetaActivity(StravaModel):
    id: int


class PolylineMap(StravaModel):
    id: Optional[str] = None
    summary_polyline: Optional[str] = None
    polyline: Optional[str] = None
    resource_state: Optional[int] = None


class SummaryGear(StravaModel):
    id: str
    name: str
    primary: Optional[bool] = None
    distance: Optional[float] = None
    resource_state: Optional[int] = None


class SummaryActivity(StravaModel):
    id: Optional[int] = None
    name: str
    distance: float
    start_date: str
    start_date_local: Optional[str] = None
    type: Optional[str] = None
    sport_type: Optional[str] = None
    moving_time: Optional[int] = None
    elapsed_time: Optional[int] = None
    total_elevation_gain: Optional[float] = None
    average_speed: Optional[float] = None
    average_heartrate: Optional[float] = None

    @field_validator("start_date")
    @classmethod
    def start_date_is_aware_iso(cls, v):
        try:
            parsed = datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"start_date is not an ISO 8601 timestamp: {v!r}")
        if parsed.tzinfo is None:
            raise ValueError(f"start_date has no UTC offset: {v!r}")
        return v


class DetailedActivity(StravaModel):
    id: int
    name: str
    type: str
    sport_type: str
    start_date: str
    start_date_local: str
    elapsed_time: int
    athlete: Optional[MetaAthlete] = None
    resource_state: Optional[int] = None
    distance: Optional[float] = None
    moving_time: Optional[int] = None
    total_elevation_gain: Optional[float] = None
    timezone: Optional[str] = None
    start_latlng: Optional[List[float]] = None
    end_latlng: Optional[List[float]] = None
    map: Optional[PolylineMap] = None
    trainer: Optional[bool] = None
    commute: Optional[bool] = None
    manual: Optional[bool] = None
    private: Optional[bool] = None
    gear_id: Optional[str] = None
    average_speed: Optional[float] = None
    max_speed: Optional[float] = None
    average_cadence: Optional[float] = None
    average_watts: Optional[float] = None
    max_watts: Optional[float] = None
    weighted_average_watts: Optional[float] = None
    kilojoules: Optional[float] = None
    device_watts: Optional[bool] = None
    has_heartrate: Optional[bool] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    calories: Optional[float] = None
    description: Optional[str] = None
    gear: Optional[SummaryGear] = None
    device_name: Optional[str] = None


class DetailedAthlete(StravaModel):
    id: int
    firstname: str
    lastname: str
    resource_state: Optional[int] = None
    username: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    sex: Optional[Literal["M", "F"]] = None
    premium: Optional[bool] = None
    summit: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    profile_medium: Optional[str] = None
    profile: Optional[str] = None
    weight: Optional[float] = None
    measurement_preference: Optional[Literal["feet", "meters"]] = None


class ActivityTotal(StravaModel):
    count: int
    distance: float
    moving_time: int
    elapsed_time: int
    elevation_gain: float
    achievement_count: Optional[int] = None


class ActivityStats(StravaModel):
    biggest_ride_distance: Optional[float] = None
    biggest_climb_elevation_gain: Optional[float] = None
    recent_ride_totals: ActivityTotal
    recent_run_totals: ActivityTotal
    recent_swim_totals: ActivityTotal
    ytd_ride_totals: ActivityTotal
    ytd_run_totals: ActivityTotal
    ytd_swim_totals: ActivityTotal
    all_ride_totals: ActivityTotal
    all_run_totals: ActivityTotal
    all_swim_totals: ActivityTotal


class SummaryClub(StravaModel):
    id: int
    name: str
    resource_state: Optional[int] = None
    profile_medium: Optional[str] = None
    sport_type: Optional[str] = None
    activity_types: Optional[List[str]] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    private: Optional[bool] = None
    member_count: Optional[int] = None
    url: Optional[str] = None


class SummarySegment(StravaModel):
    id: int
    name: str
    activity_type: str
    distance: float
    average_grade: float
    maximum_grade: Optional[float] = None
    elevation_high: Optional[float] = None
    elevation_low: Optional[float] = None
    start_latlng: Optional[List[float]] = None
    end_latlng: Optional[List[float]] = None
    climb_category: Optional[int] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    private: Optional[bool] = None
    starred: Optional[bool] = None


class DetailedSegment(SummarySegment):
    created_at: str
    updated_at: Optional[str] = None
    total_elevation_gain: Optional[float] = None
    map: Optional[PolylineMap] = None
    effort_count: Optional[int] = None
    athlete_count: Optional[int] = None
    hazardous: Optional[bool] = None
    star_count: Optional[int] = None


class ExplorerSegment(StravaModel):
    id: int
    name: str
    climb_category: int
    climb_category_desc: str
    avg_grade: float
    elev_difference: float
    distance: float
    start_latlng: Optional[List[float]] = None
    end_latlng: Optional[List[float]] = None
    points: Optional[str] = None
    starred: Optional[bool] = None


class ExplorerResponse(StravaModel):
    segments: List[ExplorerSegment]


class DetailedSegmentEffort(StravaModel):
    id: int
    name: str
    activity: MetaActivity
    athlete: MetaAthlete
    segment: SummarySegment
    elapsed_time: int
    moving_time: int
    start_date: str
    start_date_local: str
    distance: float
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    average_cadence: Optional[float] = None
    device_watts: Optional[bool] = None
    average_watts: Optional[float] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    kom_rank: Optional[int] = None
    pr_rank: Optional[int] = None
    hidden: Optional[bool] = None


class MapUrls(StravaModel):
    url: Optional[str] = None
    retina_url: Optional[str] = None


class Route(StravaModel):
    id: int
    name: str
    distance: float
    type: int
    created_at: str
    id_str: Optional[str] = None
    athlete: Optional[MetaAthlete] = None
    description: Optional[str] = None
    elevation_gain: Optional[float] = None
    map: Optional[PolylineMap] = None
    map_urls: Optional[MapUrls] = None
    private: Optional[bool] = None
    resource_state: Optional[int] = None
    starred: Optional[bool] = None
    sub_type: Optional[int] = None
    updated_at: Optional[str] = None
    estimated_moving_time: Optional[int] = None
    segments: Optional[List[SummarySegment]] = None
    timestamp: Optional[int] = None


class Photo(StravaModel):
    id: Optional[int] = None
    unique_id: Optional[str] = None
    urls: Optional[Dict[str, str]] = None
    source: Optional[int] = None
    uploaded_at: Optional[str] = None
    created_at: Optional[str] = None
    created_at_local: Optional[str] = None
    location: Optional[List[float]] = None
    caption: Optional[str] = None
    activity_id: Optional[int] = None
    activity_name: Optional[str] = None
    type: Optional[Union[int, str]] = None


class Lap(StravaModel):
    id: int
    name: str
    lap_index: int
    elapsed_time: int
    moving_time: int
    distance: float
    start_date: Optional[str] = None
    start_date_local: Optional[str] = None
    activity: Optional[MetaActivity] = None
    athlete: Optional[MetaAthlete] = None
    resource_state: Optional[int] = None
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    total_elevation_gain: Optional[float] = None
    average_speed: Optional[float] = None
    max_speed: Optional[float] = None
    average_cadence: Optional[float] = None
    average_watts: Optional[float] = None
    device_watts: Optional[bool] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    split: Optional[int] = None


class DistributionBucket(StravaModel):
    min: float
    max: float
    time: int


class ZoneRange(StravaModel):
    min: float
    max: Optional[float] = None


class HeartRateZones(StravaModel):
    custom_zones: bool
    zones: List[ZoneRange]
    distribution_buckets: Optional[List[DistributionBucket]] = None
    sensor_based: Optional[bool] = None
    points: Optional[int] = None


class PowerZones(StravaModel):
    zones: List[ZoneRange]
    distribution_buckets: Optional[List[DistributionBucket]] = None
    sensor_based: Optional[bool] = None
    points: Optional[int] = None


class AthleteZones(StravaModel):
    heart_rate: Optional[HeartRateZones] = None
    power: Optional[PowerZones] = None


class Stream(StravaModel):
    type: str
    data: List[Any]
    series_type: Optional[str] = None
    original_size: Optional[int] = None
    resolution: Optional[str] = None


@lru_cache(maxsize=None)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


def validate(schema: Any, body: Any, context: str) -> Any:
    """Check `body` against `schema` (a model class or e.g. List[Model]); raise SchemaError on mismatch."""
    try:
        return _adapter(schema).validate_python(body)
    except ValidationError as e:
        details = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        logger.error(f"Strava API validation failed ({context}): {details}")
        raise SchemaError(context, details) from e
