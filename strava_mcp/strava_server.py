#!/usr/bin/env python3
"""
Strava MCP server implementation.
This server provides Model Context Protocol (MCP) tools for interacting with the Strava API.
"""

import asyncio
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import Annotated, List, Literal, Optional

import dateparser
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from . import formatters
from .client import StravaClient
from .config import settings
from .credentials import CredentialStore
from .errors import (
    AuthError,
    ConfigurationError,
    RateLimitError,
    StravaError,
    SubscriptionRequiredError,
    UpstreamError,
)
from .pagination import fetch_all
from .streams import CHUNK_SIZE, DEFAULT_STREAM_TYPES, chunk_streams, paginate_streams, stream_statistics
from .workout import generate_zwo, parse_workout_text

# Configure logging (stdout is the MCP transport)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)

# Create MCP server
mcp = FastMCP("Strava MCP Server")

RATE_LIMIT_MESSAGE = (
    "⚠️ Rate limit reached. Please wait a few minutes before trying again.\n\n"
    "Strava API limits: 100 requests per 15 minutes, 1000 per day."
)
BOUNDS_PATTERN = re.compile(r"^-?\d+(\.\d+)?,-?\d+(\.\d+)?,-?\d+(\.\d+)?,-?\d+(\.\d+)?$")

StreamType = Literal[
    "time", "distance", "latlng", "altitude", "velocity_smooth", "heartrate",
    "cadence", "watts", "temp", "moving", "grade_smooth",
]

_client: Optional[StravaClient] = None


def get_client() -> StravaClient:
    """Lazily build the shared client from the configured credentials."""
    global _client
    if _client is None:
        _client = StravaClient(CredentialStore.from_settings(settings))
        logger.info("Strava client initialized")
    return _client


def describe_error(
    error: StravaError,
    not_found: Optional[str] = None,
    subscription: Optional[str] = None,
    forbidden: Optional[str] = None,
) -> str:
    """Render a client error as a short user-facing message."""
    if isinstance(error, ConfigurationError):
        return f"❌ Configuration Error: {error}"
    if isinstance(error, RateLimitError):
        return RATE_LIMIT_MESSAGE
    if isinstance(error, SubscriptionRequiredError):
        return f"❌ {subscription or '🔒 This feature requires a Strava subscription. Please check your subscription status.'}"
    if isinstance(error, AuthError):
        return f"❌ Authentication Error: {error.message}. Re-authorize and update the tokens in .env."
    if isinstance(error, UpstreamError):
        if error.status == 404 and not_found:
            return f"❌ {not_found}"
        if error.status == 403 and forbidden:
            return f"❌ {forbidden}"
    return f"❌ API Error: {error}"


def fail(error: StravaError, **messages) -> ToolError:
    logger.error(f"Tool call failed: {error}")
    return ToolError(describe_error(error, **messages))


def parse_date(value: str, field_name: str) -> int:
    """ISO or natural-language date to epoch seconds (naive dates are UTC)."""
    parsed = dateparser.parse(
        value,
        settings={"TIMEZONE": "UTC", "RETURN_AS_TIMEZONE_AWARE": True, "PREFER_DATES_FROM": "past"},
    )
    if parsed is None:
        raise ToolError(f"❌ Invalid {field_name} format. Please use ISO date format (e.g., '2024-01-01').")
    return int(parsed.timestamp())


# Activity Related Tools

@mcp.tool(name="get-recent-activities")
async def get_recent_activities(
    perPage: Annotated[int, Field(gt=0, description="Number of activities to retrieve (default: 30)")] = 30,
) -> List[str]:
    """Fetches the most recent activities for the authenticated athlete."""
    try:
        activities = await get_client().get_recent_activities(per_page=perPage)
    except StravaError as e:
        raise fail(e) from e

    logger.info(f"Fetched {len(activities)} recent activities")
    if not activities:
        return ["No recent activities found."]
    return [formatters.format_recent_activity(activity) for activity in activities]


@mcp.tool(name="get-all-activities")
async def get_all_activities(
    startDate: Annotated[Optional[str], Field(description="Activities after this date (e.g. '2024-01-01' or 'last monday')")] = None,
    endDate: Annotated[Optional[str], Field(description="Activities before this date (e.g. '2024-12-31')")] = None,
    activityTypes: Annotated[Optional[List[str]], Field(description="Activity types to keep, e.g. ['Run', 'Ride']")] = None,
    sportTypes: Annotated[Optional[List[str]], Field(description="Sport types to keep, e.g. ['MountainBikeRide', 'TrailRun']")] = None,
    maxActivities: Annotated[int, Field(gt=0, description="Maximum activities to return after filtering")] = settings.MAX_ACTIVITIES,
    maxApiCalls: Annotated[int, Field(gt=0, description="Maximum API calls to prevent quota exhaustion")] = settings.MAX_API_CALLS,
    perPage: Annotated[int, Field(ge=1, le=200, description="Activities per API call (max 200)")] = settings.ACTIVITIES_PER_PAGE,
) -> str:
    """Fetches complete activity history with optional filtering by date range and activity type. Paginates through results up to the configured limits."""
    before = parse_date(endDate, "endDate") if endDate else None
    after = parse_date(startDate, "startDate") if startDate else None

    wanted_types = {t.lower() for t in activityTypes or []}
    wanted_sports = {t.lower() for t in sportTypes or []}

    def matches(activity) -> bool:
        if wanted_types and (activity.type or "").lower() not in wanted_types:
            return False
        if wanted_sports and (activity.sport_type or "").lower() not in wanted_sports:
            return False
        return True

    logger.info(
        f"Fetching activities: {startDate or 'any'} to {endDate or 'any'}, "
        f"types={activityTypes or 'any'}, sports={sportTypes or 'any'}, "
        f"max={maxActivities}, calls={maxApiCalls}"
    )
    try:
        result = await fetch_all(
            get_client(),
            per_page=perPage,
            ceiling_calls=maxApiCalls,
            max_results=maxActivities,
            before=before,
            after=after,
            predicate=matches,
        )
    except StravaError as e:
        raise fail(e) from e

    statistics = (
        f"- Total fetched: {result.total_fetched}\n"
        f"- Matching filters: {result.total_matching}\n"
        f"- API calls: {result.api_calls}\n"
    )
    if not result.items:
        return (
            "No activities found matching your criteria.\n\n"
            f"Statistics:\n- Fetched {result.total_fetched} activities\n"
            f"- {result.total_matching} matched filters\n- Used {result.api_calls} API calls"
        )

    text = f"**Found {len(result.items)} activities**\n\n📊 Statistics:\n{statistics}\n"
    if result.truncated:
        text += f"⚠️ Showing first {len(result.items)} of {result.total_matching} matching activities (limited by maxActivities)\n\n"
    if result.hit_call_ceiling:
        text += f"⚠️ Stopped after {result.api_calls} API calls (limited by maxApiCalls); older activities were not fetched\n\n"
    text += "**Activities:**\n" + "\n".join(formatters.format_activity_summary(a) for a in result.items)
    return text


@mcp.tool(name="get-activity-details")
async def get_activity_details(
    activityId: Annotated[int, Field(gt=0, description="The unique identifier of the activity")],
) -> str:
    """Fetches detailed information about a specific activity using its ID."""
    try:
        activity = await get_client().get_activity(activityId)
    except StravaError as e:
        raise fail(e, not_found=f"Activity with ID {activityId} not found.") from e
    return formatters.format_activity_details(activity)


@mcp.tool(name="get-activity-laps")
async def get_activity_laps(
    id: Annotated[int, Field(gt=0, description="The Strava activity identifier")],
) -> List[str]:
    """Retrieves the laps recorded for a specific Strava activity, with a summary and the complete lap data."""
    try:
        laps = await get_client().get_activity_laps(id)
    except StravaError as e:
        raise fail(e, not_found=f"Activity with ID {id} not found.") from e

    if not laps:
        return [f"✅ No laps found for activity ID: {id}"]
    summary = f"Activity Laps Summary (ID: {id}):\n\n" + "\n\n".join(formatters.format_lap(lap) for lap in laps)
    return [summary, f"\n\nComplete Lap Data:\n{formatters.to_json(laps)}"]


@mcp.tool(name="get-activity-photos")
async def get_activity_photos(
    id: Annotated[int, Field(gt=0, description="The Strava activity identifier")],
    size: Annotated[int, Field(gt=0, description="Requested photo size in pixels")] = 2048,
) -> List[str]:
    """Retrieves the photos attached to an activity, including captions, locations and URLs."""
    try:
        photos = await get_client().get_activity_photos(id, size=size)
    except StravaError as e:
        raise fail(e, not_found=f"Activity with ID {id} not found.") from e

    if not photos:
        return [f"No photos found for activity ID: {id}"]
    summaries = [formatters.format_photo(photo, index) for index, photo in enumerate(photos, start=1)]
    summary = f"Activity Photos (ID: {id})\nTotal Photos: {len(photos)}\n\n" + "\n\n".join(summaries)
    return [summary, f"\n\nComplete Photo Data:\n{formatters.to_json(photos)}"]


@mcp.tool(name="get-activity-streams")
async def get_activity_streams(
    id: Annotated[int, Field(gt=0, description="The Strava activity identifier")],
    types: Annotated[Optional[List[StreamType]], Field(description="Stream types to fetch")] = None,
    resolution: Annotated[Optional[Literal["low", "medium", "high"]], Field(description="Data resolution")] = None,
    series_type: Annotated[Literal["time", "distance"], Field(description="Base series for the streams")] = "distance",
    page: Annotated[int, Field(ge=1, description="Page of points to return")] = 1,
    points_per_page: Annotated[int, Field(ge=-1, description="Points per page; -1 returns every point in chunks")] = 100,
) -> List[str]:
    """Retrieves time-series data streams (heart rate, power, speed, GPS...) for an activity, paginated, with summary statistics."""
    types = list(types or DEFAULT_STREAM_TYPES)
    try:
        streams = await get_client().get_activity_streams(id, types, resolution=resolution, series_type=series_type)
    except StravaError as e:
        raise fail(e, not_found=f"Activity with ID {id} not found.") from e

    if not streams:
        raise ToolError(
            "⚠️ No streams were returned. This could mean:\n"
            "1. The activity was recorded without this data\n"
            "2. The activity is not a GPS-based activity\n"
            "3. The activity is too old (Strava may not keep all stream data indefinitely)"
        )

    if points_per_page == -1:
        chunks = chunk_streams(streams)
        total_points = len(streams[0].data)
        total_messages = len(chunks) + 1
        header = {
            "metadata": {
                "available_types": [s.type for s in streams],
                "total_points": total_points,
                "total_chunks": len(chunks),
                "chunk_size": CHUNK_SIZE,
                "resolution": streams[0].resolution,
                "series_type": streams[0].series_type,
            },
            "statistics": stream_statistics(streams),
        }
        messages = [
            f"📊 Activity Stream Data ({total_points} points)\n"
            f"Will be sent in {total_messages} messages:\n"
            f"1. Metadata and Statistics\n"
            f"2-{total_messages}. Stream Data ({CHUNK_SIZE} points per message)\n\n"
            f"Message 1/{total_messages}:\n{json.dumps(header, indent=2)}"
        ]
        for index, chunk in enumerate(chunks, start=2):
            messages.append(
                f"Message {index}/{total_messages} (points {chunk['start'] + 1}-{chunk['end']}):\n"
                + json.dumps({"streams": chunk["streams"]}, indent=2)
            )
        return messages

    if points_per_page < 1:
        raise ToolError("❌ points_per_page must be a positive number or -1")
    try:
        data = paginate_streams(streams, page, points_per_page)
    except ValueError as e:
        raise ToolError(f"❌ {e}") from e
    return [json.dumps(data, indent=2)]


# Athlete Related Tools

@mcp.tool(name="get-athlete-profile")
async def get_athlete_profile() -> str:
    """Fetches the profile information for the authenticated athlete, including their unique numeric ID needed for other tools like get-athlete-stats."""
    try:
        athlete = await get_client().get_authenticated_athlete()
    except StravaError as e:
        raise fail(e) from e
    logger.info(f"Fetched profile for {athlete.firstname} {athlete.lastname} (ID: {athlete.id})")
    return formatters.format_athlete_profile(athlete)


@mcp.tool(name="get-athlete-stats")
async def get_athlete_stats(
    athleteId: Annotated[int, Field(gt=0, description="Athlete ID, obtained from get-athlete-profile")],
) -> str:
    """Fetches the activity statistics (recent, YTD, all-time) for a specific athlete using their ID."""
    try:
        stats = await get_client().get_athlete_stats(athleteId)
    except StravaError as e:
        raise fail(e, not_found=f"Athlete with ID {athleteId} not found (when fetching stats).") from e
    return formatters.format_athlete_stats(stats)


@mcp.tool(name="get-athlete-zones")
async def get_athlete_zones() -> List[str]:
    """Retrieves the authenticated athlete's configured heart rate and power zones."""
    try:
        zones = await get_client().get_athlete_zones()
    except StravaError as e:
        raise fail(
            e,
            forbidden="🔒 Access denied. This tool requires 'profile:read_all' permission. Please re-authorize with the correct scope.",
            subscription="🔒 Accessing zones might require a Strava subscription.",
        ) from e
    return [
        formatters.format_athlete_zones(zones),
        f"\n\nRaw Athlete Zone Data:\n{formatters.to_json(zones.model_dump(mode='json', exclude_none=True))}",
    ]


@mcp.tool(name="list-athlete-clubs")
async def list_athlete_clubs() -> str:
    """Lists the clubs the authenticated athlete is a member of."""
    try:
        clubs = await get_client().list_athlete_clubs()
    except StravaError as e:
        raise fail(e) from e
    if not clubs:
        return "No clubs found for the athlete."
    return "**Your Strava Clubs:**\n\n" + "\n---\n".join(formatters.format_club(club) for club in clubs)


# Segment Related Tools

@mcp.tool(name="list-starred-segments")
async def list_starred_segments() -> str:
    """Lists the segments starred by the authenticated athlete, in their preferred units."""
    client = get_client()
    try:
        athlete = await client.get_authenticated_athlete()
        segments = await client.list_starred_segments()
    except StravaError as e:
        raise fail(e) from e
    if not segments:
        return "No starred segments found."
    units = formatters.unit_preferences(athlete)
    return "**Your Starred Segments:**\n\n" + "\n---\n".join(
        formatters.format_starred_segment(segment, units) for segment in segments
    )


@mcp.tool(name="get-segment")
async def get_segment(
    segmentId: Annotated[int, Field(gt=0, description="The unique identifier of the segment")],
) -> str:
    """Fetches detailed information about a specific segment using its ID."""
    try:
        segment = await get_client().get_segment(segmentId)
    except StravaError as e:
        raise fail(e, not_found=f"Segment with ID {segmentId} not found.") from e
    return formatters.format_segment(segment)


@mcp.tool(name="explore-segments")
async def explore_segments(
    bounds: Annotated[str, Field(description="South-west and north-east corners: 'sw_lat,sw_lng,ne_lat,ne_lng'")],
    activityType: Annotated[Optional[Literal["running", "riding"]], Field(description="Filter by activity type")] = None,
    minCat: Annotated[Optional[int], Field(ge=0, le=5, description="Minimum climb category (riding only)")] = None,
    maxCat: Annotated[Optional[int], Field(ge=0, le=5, description="Maximum climb category (riding only)")] = None,
) -> str:
    """Searches for popular segments within a given geographical area."""
    if not BOUNDS_PATTERN.match(bounds):
        raise ToolError("❌ Input Error: bounds must be 'sw_lat,sw_lng,ne_lat,ne_lng'.")
    if (minCat is not None or maxCat is not None) and activityType != "riding":
        raise ToolError("❌ Input Error: Climb category filters (minCat, maxCat) require activityType to be 'riding'.")

    client = get_client()
    try:
        athlete = await client.get_authenticated_athlete()
        response = await client.explore_segments(bounds, activity_type=activityType, min_cat=minCat, max_cat=maxCat)
    except StravaError as e:
        raise fail(e) from e

    if not response.segments:
        return "No segments found in the specified area with the given filters."
    units = formatters.unit_preferences(athlete)
    items = [formatters.format_explorer_segment(segment, units) for segment in response.segments]
    return "**Found Segments:**\n\n" + "\n---\n".join(items)


@mcp.tool(name="star-segment")
async def star_segment(
    segmentId: Annotated[int, Field(gt=0, description="The unique identifier of the segment")],
    starred: Annotated[bool, Field(description="True to star the segment, false to unstar it")],
) -> str:
    """Stars or unstars a specific segment for the authenticated athlete."""
    action = "starring" if starred else "unstarring"
    try:
        segment = await get_client().star_segment(segmentId, starred)
    except StravaError as e:
        logger.error(f"Failed {action} segment {segmentId}: {e}")
        raise ToolError(f"❌ API Error: Failed {action} segment {segmentId}. {e}") from e
    return (
        f'Successfully {action} segment: "{segment.name}" (ID: {segment.id}). '
        f"Its starred status is now: {str(bool(segment.starred)).lower()}."
    )


@mcp.tool(name="get-segment-effort")
async def get_segment_effort(
    effortId: Annotated[int, Field(gt=0, description="The unique identifier of the segment effort")],
) -> str:
    """Fetches detailed information about a specific segment effort using its ID."""
    try:
        effort = await get_client().get_segment_effort(effortId)
    except StravaError as e:
        raise fail(
            e,
            not_found=f"Segment effort with ID {effortId} not found.",
            subscription=f"🔒 Accessing this segment effort (ID: {effortId}) requires a Strava subscription. Please check your subscription status.",
        ) from e
    return formatters.format_segment_effort(effort)


@mcp.tool(name="list-segment-efforts")
async def list_segment_efforts(
    segmentId: Annotated[int, Field(gt=0, description="The unique identifier of the segment")],
    startDateLocal: Annotated[Optional[str], Field(description="ISO 8601 start of the date range")] = None,
    endDateLocal: Annotated[Optional[str], Field(description="ISO 8601 end of the date range")] = None,
    perPage: Annotated[int, Field(ge=1, le=200, description="Efforts per page (max 200)")] = 30,
) -> str:
    """Lists the authenticated athlete's efforts on a given segment, optionally filtered by date."""
    try:
        efforts = await get_client().list_segment_efforts(
            segmentId, start_date_local=startDateLocal, end_date_local=endDateLocal, per_page=perPage
        )
    except StravaError as e:
        raise fail(
            e,
            not_found=f"Segment with ID {segmentId} not found (when listing efforts).",
            subscription="🔒 Accessing segment efforts requires a Strava subscription. Please check your subscription status.",
        ) from e
    if not efforts:
        return f"No efforts found for segment {segmentId} matching the criteria."
    summaries = [formatters.format_segment_effort_summary(effort) for effort in efforts]
    return f"**Segment {segmentId} Efforts:**\n\n" + "\n".join(summaries)


# Route Related Tools

@mcp.tool(name="list-athlete-routes")
async def list_athlete_routes(
    page: Annotated[int, Field(ge=1, description="Page number")] = 1,
    perPage: Annotated[int, Field(ge=1, le=50, description="Routes per page (max 50)")] = 20,
) -> str:
    """Lists the routes created by the authenticated athlete, with pagination."""
    try:
        routes = await get_client().list_athlete_routes(page=page, per_page=perPage)
    except StravaError as e:
        raise fail(e) from e
    if not routes:
        return "No routes found for the athlete."
    summaries = [formatters.format_route_list_item(route) for route in routes]
    return f"**Athlete Routes (Page {page}):**\n\n" + "\n".join(summaries)


def _validate_route_id(route_id: str) -> None:
    if not route_id.isdigit():
        raise ToolError(f"❌ Invalid route ID: {route_id}. Route IDs are numeric.")


@mcp.tool(name="get-route")
async def get_route(
    routeId: Annotated[str, Field(description="The unique identifier of the route")],
) -> str:
    """Fetches detailed information about a specific route using its ID."""
    _validate_route_id(routeId)
    try:
        route = await get_client().get_route(routeId)
    except StravaError as e:
        raise fail(e, not_found=f"Route with ID {routeId} not found.") from e
    return formatters.format_route_summary(route)


async def _export_route(route_id: str, export_format: str) -> str:
    _validate_route_id(route_id)
    export_dir = settings.ROUTE_EXPORT_PATH
    if not export_dir:
        raise ToolError(
            "❌ Error: Missing ROUTE_EXPORT_PATH in .env file. Please configure the directory for saving exports."
        )

    directory = Path(export_dir)
    try:
        if not directory.exists():
            logger.info(f"Export directory {directory} not found, creating it...")
            directory.mkdir(parents=True, exist_ok=True)
        elif not directory.is_dir():
            raise ToolError(f"❌ Error: ROUTE_EXPORT_PATH ({export_dir}) is not a valid directory.")
        elif not os.access(directory, os.W_OK):
            raise PermissionError(f"Directory {directory} is not writable")

        client = get_client()
        if export_format == "gpx":
            data = await client.export_route_gpx(route_id)
        else:
            data = await client.export_route_tcx(route_id)

        full_path = directory / f"route-{route_id}.{export_format}"
        await asyncio.to_thread(full_path.write_text, data, encoding="utf-8")
    except PermissionError as e:
        logger.error(f"Cannot write route {route_id} export: {str(e)}")
        raise ToolError(f"❌ Error: No write permission for ROUTE_EXPORT_PATH directory ({export_dir}).") from e
    except OSError as e:
        logger.error(f"Error exporting route {route_id}: {str(e)}")
        raise ToolError(f"❌ Error exporting route {route_id} as {export_format.upper()}: {str(e)}") from e
    except StravaError as e:
        raise fail(e, not_found=f"Route with ID {route_id} not found.") from e

    logger.info(f"Exported route {route_id} to {full_path}")
    return f"✅ Route {route_id} exported successfully as {export_format.upper()} to: {full_path}"


@mcp.tool(name="export-route-gpx")
async def export_route_gpx(
    routeId: Annotated[str, Field(description="The ID of the Strava route to export")],
) -> str:
    """Exports a specific Strava route in GPX format and saves it to the configured export directory."""
    return await _export_route(routeId, "gpx")


@mcp.tool(name="export-route-tcx")
async def export_route_tcx(
    routeId: Annotated[str, Field(description="The ID of the Strava route to export")],
) -> str:
    """Exports a specific Strava route in TCX format and saves it to the configured export directory."""
    return await _export_route(routeId, "tcx")


# Workout Tools

@mcp.tool(name="format-workout-file")
def format_workout_file(
    workoutText: Annotated[str, Field(description="Lines like '- Interval: 5 min at 95% FTP [Cadence: 90, Notes: Push]'")],
    format: Annotated[Literal["zwo"], Field(description="Output file format")] = "zwo",
) -> str:
    """Formats a structured workout plan into a Zwift .zwo workout file."""
    segments = parse_workout_text(workoutText)
    if not segments:
        raise ToolError(
            "❌ No valid workout segments found in the input text. Please ensure the format matches the expected pattern."
        )
    logger.info(f"Generating {format} workout with {len(segments)} segments")
    return generate_zwo(segments)


def main() -> None:
    """Main entry point for the server."""
    try:
        logger.info("Starting Strava MCP Server...")
        mcp.run()
    except Exception as e:
        logger.error(f"Server error: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
