"""
Text formatting for Strava resources.
Everything here is metric unless the athlete's measurement preference says otherwise.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import polyline

from .schemas import (
    ActivityStats,
    ActivityTotal,
    AthleteZones,
    DetailedActivity,
    DetailedAthlete,
    DetailedSegment,
    DetailedSegmentEffort,
    DistributionBucket,
    ExplorerSegment,
    Lap,
    Photo,
    Route,
    SummaryActivity,
    SummaryClub,
    SummarySegment,
    ZoneRange,
)

logger = logging.getLogger(__name__)

STRAVA_ACTIVITY_URL = "https://www.strava.com/activities"

METERS_TO_MILES = 0.000621371
METERS_TO_FEET = 3.28084


def decode_polyline(encoded_polyline: str) -> List[Tuple[float, float]]:
    """Decode a polyline string into a list of coordinates."""
    try:
        return polyline.decode(encoded_polyline)
    except Exception as e:
        logger.error(f"Failed to decode polyline: {str(e)}")
        raise ValueError(f"Invalid polyline data: {str(e)}")


def format_duration(seconds: Optional[float]) -> str:
    """Format duration in seconds to HH:MM:SS, dropping the hour part when it is zero."""
    if seconds is None or seconds < 0:
        return "N/A"
    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_compact_duration(seconds: int) -> str:
    """1h 5m / 5m 3s / 42s"""
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_distance(meters: Optional[float], decimals: int = 2) -> str:
    if meters is None:
        return "N/A"
    return f"{meters / 1000:.{decimals}f} km"


def format_elevation(meters: Optional[float]) -> str:
    if meters is None:
        return "N/A"
    return f"{round(meters)} m"


def format_speed(mps: Optional[float]) -> str:
    if mps is None:
        return "N/A"
    return f"{mps * 3.6:.1f} km/h"


def format_pace(mps: Optional[float]) -> str:
    if mps is None or mps <= 0:
        return "N/A"
    minutes_per_km = 1000 / (mps * 60)
    minutes = int(minutes_per_km)
    seconds = round((minutes_per_km - minutes) * 60)
    if seconds == 60:
        minutes, seconds = minutes + 1, 0
    return f"{minutes}:{seconds:02d} /km"


def parse_strava_date(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_date(value: Optional[str]) -> str:
    if not value:
        return "N/A"
    try:
        return parse_strava_date(value).strftime("%Y-%m-%d")
    except ValueError:
        return value


def format_datetime(value: Optional[str]) -> str:
    if not value:
        return "N/A"
    try:
        return parse_strava_date(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def yes_no(flag: Optional[bool]) -> str:
    return "Yes" if flag else "No"


def or_na(value: Any) -> Any:
    return "N/A" if value is None or value == "" else value


def unit_preferences(athlete: DetailedAthlete) -> Dict[str, Any]:
    """Distance/elevation conversion factors for the athlete's measurement preference."""
    if athlete.measurement_preference == "feet":
        return {"distance_factor": METERS_TO_MILES, "distance_unit": "mi", "elevation_factor": METERS_TO_FEET, "elevation_unit": "ft"}
    return {"distance_factor": 0.001, "distance_unit": "km", "elevation_factor": 1, "elevation_unit": "m"}


def activity_emoji(activity_type: str) -> str:
    lowered = activity_type.lower()
    if "ride" in lowered or "bike" in lowered:
        return "🚴"
    if "swim" in lowered:
        return "🏊"
    if "ski" in lowered:
        return "⛷️"
    if "hike" in lowered or "walk" in lowered:
        return "🥾"
    if "yoga" in lowered:
        return "🧘"
    if "weight" in lowered:
        return "💪"
    return "🏃"


def to_json(value: Any) -> str:
    """Pretty JSON for models, lists of models, or plain data."""
    if isinstance(value, list):
        value = [v.model_dump(mode="json") if hasattr(v, "model_dump") else v for v in value]
    elif hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    return json.dumps(value, indent=2, ensure_ascii=False)


# Activities

def format_recent_activity(activity: SummaryActivity) -> str:
    date = format_date(activity.start_date)
    distance = f"{activity.distance}m" if activity.distance else "N/A"
    return f"🏃 {activity.name} (ID: {or_na(activity.id)}) — {distance} on {date}"


def format_activity_summary(activity: SummaryActivity) -> str:
    date = format_date(activity.start_date)
    distance = format_distance(activity.distance) if activity.distance else "N/A"
    duration = format_compact_duration(activity.moving_time) if activity.moving_time else "N/A"
    activity_type = activity.sport_type or activity.type or "Unknown"
    line = f"{activity_emoji(activity_type)} {activity.name} (ID: {or_na(activity.id)}) - {activity_type} - {distance} in {duration} on {date}"
    if activity.id is not None:
        line += f"\n   URL: {STRAVA_ACTIVITY_URL}/{activity.id}"
    return line


def format_activity_details(activity: DetailedActivity) -> str:
    details = f"🏃 **{activity.name}** (ID: {activity.id})\n"
    details += f"   - Type: {activity.type} ({activity.sport_type})\n"
    details += f"   - Date: {format_datetime(activity.start_date_local)}\n"
    details += f"   - Moving Time: {format_duration(activity.moving_time)}, Elapsed Time: {format_duration(activity.elapsed_time)}\n"
    if activity.distance is not None:
        details += f"   - Distance: {format_distance(activity.distance)}\n"
    if activity.total_elevation_gain is not None:
        details += f"   - Elevation Gain: {format_elevation(activity.total_elevation_gain)}\n"
    if activity.average_speed is not None:
        details += f"   - Average Speed: {format_speed(activity.average_speed)}"
        if activity.type == "Run":
            details += f" (Pace: {format_pace(activity.average_speed)})"
        details += "\n"
    if activity.max_speed is not None:
        details += f"   - Max Speed: {format_speed(activity.max_speed)}\n"
    if activity.average_cadence is not None:
        details += f"   - Avg Cadence: {activity.average_cadence:.1f}\n"
    if activity.average_watts is not None:
        details += f"   - Avg Watts: {activity.average_watts:.1f}\n"
    if activity.average_heartrate is not None:
        details += f"   - Avg Heart Rate: {activity.average_heartrate:.1f} bpm\n"
    if activity.max_heartrate is not None:
        details += f"   - Max Heart Rate: {activity.max_heartrate:.0f} bpm\n"
    if activity.calories is not None:
        details += f"   - Calories: {activity.calories:.0f}\n"
    if activity.description:
        details += f"   - Description: {activity.description}\n"
    if activity.gear:
        details += f"   - Gear: {activity.gear.name}\n"
    if activity.map and activity.map.summary_polyline:
        try:
            points = decode_polyline(activity.map.summary_polyline)
            details += f"   - Route Points: {len(points)}\n"
        except ValueError:
            logger.warning(f"Skipping route points for activity {activity.id}")
    return details


def format_lap(lap: Lap) -> str:
    lines = [
        f"Lap {lap.lap_index}: {lap.name or 'Unnamed Lap'}",
        f"  Time: {format_duration(lap.elapsed_time)} (Moving: {format_duration(lap.moving_time)})",
        f"  Distance: {lap.distance / 1000:.2f} km",
        f"  Avg Speed: {f'{lap.average_speed * 3.6:.2f} km/h' if lap.average_speed else 'N/A'}",
        f"  Max Speed: {f'{lap.max_speed * 3.6:.2f} km/h' if lap.max_speed else 'N/A'}",
    ]
    if lap.total_elevation_gain:
        lines.append(f"  Elevation Gain: {lap.total_elevation_gain:.1f} m")
    if lap.average_heartrate:
        lines.append(f"  Avg HR: {lap.average_heartrate:.1f} bpm")
    if lap.max_heartrate:
        lines.append(f"  Max HR: {lap.max_heartrate:g} bpm")
    if lap.average_cadence:
        lines.append(f"  Avg Cadence: {lap.average_cadence:.1f} rpm")
    if lap.average_watts:
        sensor = " (Sensor)" if lap.device_watts else ""
        lines.append(f"  Avg Power: {lap.average_watts:.1f} W{sensor}")
    return "\n".join(lines)


def format_photo(photo: Photo, index: int) -> str:
    header = f"Photo {index}"
    if photo.id:
        header += f" (ID: {photo.id})"
    if photo.unique_id:
        header += f" [{photo.unique_id}]"
    details = [header]

    if photo.source is not None:
        source = {1: "Strava", 2: "Instagram"}.get(photo.source, f"Unknown ({photo.source})")
        details.append(f"  Source: {source}")
    if photo.caption:
        details.append(f"  Caption: {photo.caption}")
    if photo.location and len(photo.location) == 2:
        lat, lng = photo.location
        details.append(f"  Location: {lat:.6f}, {lng:.6f}")
    if photo.created_at:
        details.append(f"  Created: {photo.created_at}")
    if photo.urls:
        details.append("  URLs:")
        for size_key, url in photo.urls.items():
            details.append(f"    {size_key}: {url}")
    return "\n".join(details)


# Athlete

def format_athlete_profile(athlete: DetailedAthlete) -> str:
    location = ", ".join(part for part in [athlete.city, athlete.state, athlete.country] if part) or "N/A"
    weight = f"{athlete.weight} kg" if athlete.weight else "N/A"
    parts = [
        f"👤 **Profile for {athlete.firstname} {athlete.lastname}** (ID: {athlete.id})",
        f"   - Username: {or_na(athlete.username)}",
        f"   - Location: {location}",
        f"   - Sex: {or_na(athlete.sex)}",
        f"   - Weight: {weight}",
        f"   - Measurement Units: {or_na(athlete.measurement_preference)}",
        f"   - Strava Summit Member: {yes_no(athlete.summit)}",
        f"   - Profile Image (Medium): {or_na(athlete.profile_medium)}",
        f"   - Joined Strava: {format_date(athlete.created_at)}",
        f"   - Last Updated: {format_date(athlete.updated_at)}",
    ]
    return "\n".join(parts)


def _format_stat(value: Optional[float], unit: str) -> str:
    if value is None:
        return "N/A"
    if unit == "km":
        return f"{value / 1000:.2f} km"
    if unit == "m":
        return f"{round(value)} m"
    return f"{value / 3600:.1f} hrs"


def _stat_line(label: str, total: Optional[float], unit: str, count: Optional[int] = None, time: Optional[int] = None) -> str:
    line = f"   - {label}: {_format_stat(total, unit)}"
    if count is not None:
        line += f" ({count} activities)"
    if time is not None:
        line += f" / {_format_stat(time, 'hrs')} hours"
    return line


def _totals_block(title: str, totals: ActivityTotal) -> str:
    block = f"*{title}:*\n"
    block += _stat_line("Distance", totals.distance, "km", totals.count, totals.moving_time) + "\n"
    block += _stat_line("Elevation Gain", totals.elevation_gain, "m") + "\n"
    return block


def format_athlete_stats(stats: ActivityStats) -> str:
    response = "📊 **Your Strava Stats:**\n"

    response += "**Rides:**\n"
    if stats.biggest_ride_distance is not None:
        response += _stat_line("Biggest Ride", stats.biggest_ride_distance, "km") + "\n"
    if stats.biggest_climb_elevation_gain is not None:
        response += _stat_line("Biggest Climb", stats.biggest_climb_elevation_gain, "m") + "\n"
    response += _totals_block("Recent Rides (last 4 weeks)", stats.recent_ride_totals)
    response += _totals_block("Year-to-Date Rides", stats.ytd_ride_totals)
    response += _totals_block("All-Time Rides", stats.all_ride_totals)

    response += "\n**Runs:**\n"
    response += _totals_block("Recent Runs (last 4 weeks)", stats.recent_run_totals)
    response += _totals_block("Year-to-Date Runs", stats.ytd_run_totals)
    response += _totals_block("All-Time Runs", stats.all_run_totals)

    response += "\n**Swims:**\n"
    response += _totals_block("Recent Swims (last 4 weeks)", stats.recent_swim_totals)
    response += _totals_block("Year-to-Date Swims", stats.ytd_swim_totals)
    response += _totals_block("All-Time Swims", stats.all_swim_totals)
    return response


def _format_zone_range(zone: ZoneRange) -> str:
    if zone.max is not None and zone.max != -1:
        return f"{zone.min:g} - {zone.max:g}"
    return f"{zone.min:g}+"


def _format_distribution(buckets: Optional[List[DistributionBucket]]) -> str:
    if not buckets:
        return "  Distribution data not available."
    lines = []
    for bucket in buckets:
        upper = "∞" if bucket.max == -1 else f"{bucket.max:g}"
        lines.append(f"  - {bucket.min:g}-{upper}: {format_duration(bucket.time)}")
    return "\n".join(lines)


def format_athlete_zones(zones: AthleteZones) -> str:
    text = "**Athlete Zones:**\n"

    if zones.heart_rate:
        text += "\n❤️ **Heart Rate Zones**\n"
        text += f"   Custom Zones: {yes_no(zones.heart_rate.custom_zones)}\n"
        for index, zone in enumerate(zones.heart_rate.zones, start=1):
            text += f"   Zone {index}: {_format_zone_range(zone)} bpm\n"
        if zones.heart_rate.distribution_buckets:
            text += "   Time Distribution:\n" + _format_distribution(zones.heart_rate.distribution_buckets) + "\n"
    else:
        text += "\n❤️ Heart Rate Zones: Not configured\n"

    if zones.power:
        text += "\n⚡ **Power Zones**\n"
        for index, zone in enumerate(zones.power.zones, start=1):
            text += f"   Zone {index}: {_format_zone_range(zone)} W\n"
        if zones.power.distribution_buckets:
            text += "   Time Distribution:\n" + _format_distribution(zones.power.distribution_buckets) + "\n"
    else:
        text += "\n⚡ Power Zones: Not configured\n"

    return text


def format_club(club: SummaryClub) -> str:
    return "\n".join([
        f"👥 **{club.name}** (ID: {club.id})",
        f"   - Sport: {or_na(club.sport_type)}",
        f"   - Members: {or_na(club.member_count)}",
        f"   - Location: {or_na(club.city)}, {or_na(club.state)}, {or_na(club.country)}",
        f"   - Private: {yes_no(club.private)}",
        f"   - URL: {or_na(club.url)}",
    ])


# Segments

def format_starred_segment(segment: SummarySegment, units: Dict[str, Any]) -> str:
    location = ", ".join(part for part in [segment.city, segment.state, segment.country] if part) or "N/A"
    distance = segment.distance * units["distance_factor"]
    return "\n".join([
        f"⭐ **{segment.name}** (ID: {segment.id})",
        f"   - Activity Type: {segment.activity_type}",
        f"   - Distance: {distance:.2f} {units['distance_unit']}",
        f"   - Avg Grade: {segment.average_grade:g}%",
        f"   - Location: {location}",
        f"   - Private: {yes_no(segment.private)}",
    ])


def format_explorer_segment(segment: ExplorerSegment, units: Dict[str, Any]) -> str:
    distance = segment.distance * units["distance_factor"]
    elevation = segment.elev_difference * units["elevation_factor"]
    return "\n".join([
        f"🗺️ **{segment.name}** (ID: {segment.id})",
        f"   - Climb: Cat {segment.climb_category_desc} ({segment.climb_category})",
        f"   - Distance: {distance:.2f} {units['distance_unit']}",
        f"   - Avg Grade: {segment.avg_grade:g}%",
        f"   - Elev Difference: {elevation:.0f} {units['elevation_unit']}",
        f"   - Starred: {yes_no(segment.starred)}",
    ])


def _grade(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.1f}"


def format_segment(segment: DetailedSegment) -> str:
    details = f"🗺️ **Segment: {segment.name}** (ID: {segment.id})\n"
    details += f"   - Activity Type: {segment.activity_type}\n"
    details += f"   - Location: {or_na(segment.city)}, {or_na(segment.state)}, {or_na(segment.country)}\n"
    details += f"   - Distance: {format_distance(segment.distance)}\n"
    details += f"   - Avg Grade: {_grade(segment.average_grade)}%, Max Grade: {_grade(segment.maximum_grade)}%\n"
    details += (
        f"   - Elevation: Gain {format_elevation(segment.total_elevation_gain)}, "
        f"High {format_elevation(segment.elevation_high)}, Low {format_elevation(segment.elevation_low)}\n"
    )
    details += f"   - Climb Category: {or_na(segment.climb_category)}\n"
    details += f"   - Private: {yes_no(segment.private)}\n"
    details += f"   - Starred by You: {yes_no(segment.starred)}\n"
    details += f"   - Total Efforts: {or_na(segment.effort_count)}, Athletes: {or_na(segment.athlete_count)}\n"
    details += f"   - Star Count: {or_na(segment.star_count)}\n"
    details += f"   - Created: {format_date(segment.created_at)}\n"
    return details


def format_segment_effort(effort: DetailedSegmentEffort) -> str:
    details = f"⏱️ **Segment Effort: {effort.name}** (ID: {effort.id})\n"
    details += f"   - Activity ID: {effort.activity.id}, Athlete ID: {effort.athlete.id}\n"
    details += f"   - Segment ID: {effort.segment.id}\n"
    details += f"   - Date: {format_datetime(effort.start_date_local)}\n"
    details += f"   - Moving Time: {format_duration(effort.moving_time)}, Elapsed Time: {format_duration(effort.elapsed_time)}\n"
    details += f"   - Distance: {format_distance(effort.distance)}\n"
    if effort.average_cadence is not None:
        details += f"   - Avg Cadence: {effort.average_cadence:.1f}\n"
    if effort.average_watts is not None:
        details += f"   - Avg Watts: {effort.average_watts:.1f}\n"
    if effort.average_heartrate is not None:
        details += f"   - Avg Heart Rate: {effort.average_heartrate:.1f} bpm\n"
    if effort.max_heartrate is not None:
        details += f"   - Max Heart Rate: {effort.max_heartrate:.0f} bpm\n"
    if effort.kom_rank is not None:
        details += f"   - KOM Rank: {effort.kom_rank}\n"
    if effort.pr_rank is not None:
        details += f"   - PR Rank: {effort.pr_rank}\n"
    details += f"   - Hidden: {yes_no(effort.hidden)}\n"
    return details


def format_segment_effort_summary(effort: DetailedSegmentEffort) -> str:
    summary = f"⏱️ Effort ID: {effort.id} ({format_date(effort.start_date_local)})"
    summary += f" | Time: {format_duration(effort.moving_time)} (Moving), {format_duration(effort.elapsed_time)} (Elapsed)"
    summary += f" | Dist: {format_distance(effort.distance)}"
    if effort.pr_rank is not None:
        summary += f" | PR Rank: {effort.pr_rank}"
    if effort.kom_rank is not None:
        summary += f" | KOM Rank: {effort.kom_rank}"
    return summary


# Routes

def _route_type(route_type: int, fallback: str) -> str:
    return {1: "Ride", 2: "Run"}.get(route_type, fallback)


def format_route_list_item(route: Route) -> str:
    distance = f"{route.distance / 1000:.1f} km" if route.distance else "N/A"
    elevation = f"{route.elevation_gain:.0f} m" if route.elevation_gain else "N/A"
    return "\n".join([
        f"🗺️ **{route.name}** (ID: {route.id})",
        f"   - Distance: {distance}",
        f"   - Elevation: {elevation}",
        f"   - Created: {format_date(route.created_at)}",
        f"   - Type: {_route_type(route.type, 'Other')}",
    ])


def format_route_summary(route: Route) -> str:
    summary = f"📍 Route: {route.name} (#{route.id})\n"
    summary += (
        f"   - Type: {_route_type(route.type, 'Walk')}, Distance: {format_distance(route.distance)}, "
        f"Elevation: {format_elevation(route.elevation_gain)}\n"
    )
    segments = len(route.segments) if route.segments is not None else "N/A"
    summary += f"   - Created: {format_date(route.created_at)}, Segments: {segments}\n"
    if route.map and route.map.summary_polyline:
        try:
            points = decode_polyline(route.map.summary_polyline)
        except ValueError:
            points = []
        if points:
            start, end = points[0], points[-1]
            summary += f"   - Start: {start[0]:.5f}, {start[1]:.5f} / End: {end[0]:.5f}, {end[1]:.5f}\n"
    if route.description:
        truncated = route.description[:100] + ("..." if len(route.description) > 100 else "")
        summary += f"   - Description: {truncated}\n"
    return summary
