"""
Authenticated Strava API client.
Every endpoint goes through one request path: bearer token, status classification,
a single refresh-and-retry on 401, then schema validation of the body.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx

from .auth import TokenRefresher
from .config import settings
from .credentials import CredentialStore
from .errors import (
    AuthError,
    ConfigurationError,
    RateLimitError,
    SchemaError,
    SubscriptionRequiredError,
    TokenRefreshError,
    UpstreamError,
)
from .schemas import (
    ActivityStats,
    AthleteZones,
    DetailedActivity,
    DetailedAthlete,
    DetailedSegment,
    DetailedSegmentEffort,
    ExplorerResponse,
    Lap,
    Photo,
    Route,
    Stream,
    SummaryActivity,
    SummaryClub,
    SummarySegment,
    validate,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_message(response: httpx.Response) -> str:
    """Prefer Strava's own `message` field, fall back to the reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or response.text or "Unknown error"


class StravaClient:
    def __init__(
        self,
        store: CredentialStore,
        http_client: Optional[httpx.AsyncClient] = None,
        refresher: Optional[TokenRefresher] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.base_url = (base_url or settings.STRAVA_API_BASE_URL).rstrip("/")
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout or settings.HTTP_TIMEOUT_SECONDS)
        self.refresher = refresher or TokenRefresher(store, self.http_client)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def with_auth_retry(self, call: Callable[[str], Awaitable[T]], context: str) -> T:
        """
        Run `call` with the current access token. On a 401, refresh once and retry once
        with the new token. A failed refresh surfaces as the original AuthError.
        """
        token = self.store.require_access_token()
        try:
            return await call(token)
        except AuthError as original:
            logger.warning(f"Received 401 in {context}, attempting token refresh")
            try:
                credentials = await self.refresher.refresh(stale_token=token)
            except (TokenRefreshError, ConfigurationError) as e:
                logger.error(f"Token refresh failed in {context}: {str(e)}")
                raise original from e
            logger.info(f"Retrying {context} with refreshed token")
            return await call(credentials.access_token)

    async def execute(
        self,
        endpoint: str,
        context: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        schema: Any = None,
        expect_text: bool = False,
        retry_auth: bool = True,
    ) -> Any:
        """Issue one API call and return the validated body (or raw text for XML exports)."""

        async def call(token: str) -> Any:
            return await self._send(method, endpoint, token, context, params=params, json=json, expect_text=expect_text)

        if retry_auth:
            body = await self.with_auth_retry(call, context)
        else:
            body = await call(self.store.require_access_token())

        if schema is None or expect_text:
            return body
        return validate(schema, body, context)

    async def _send(
        self,
        method: str,
        endpoint: str,
        token: str,
        context: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        expect_text: bool = False,
    ) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {"Authorization": f"Bearer {token}"}
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self.http_client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Strava API request failed in {context}: {str(e)}")
            raise UpstreamError(None, str(e) or e.__class__.__name__, context) from e

        self._raise_for_status(response, context)

        if expect_text:
            return response.text
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Non-JSON response from Strava in {context}")
            raise SchemaError(context, [{"loc": "", "msg": f"Response body is not JSON: {str(e)}", "type": "json"}]) from e

    def _raise_for_status(self, response: httpx.Response, context: str) -> None:
        if response.is_success:
            return

        status = response.status_code
        message = _error_message(response)

        if status == 401:
            logger.warning(f"Strava API returned 401 in {context}: {message}")
            raise AuthError(context, message)
        if status == 402:
            logger.error(f"Strava subscription required in {context}")
            raise SubscriptionRequiredError(context)
        if status == 429:
            logger.warning(f"Strava API rate limit hit in {context}")
            raise RateLimitError(context, retry_after=response.headers.get("Retry-After"))

        logger.error(f"Strava API Error in {context} ({status}): {message}")
        raise UpstreamError(status, message, context)

    # Athlete

    async def get_authenticated_athlete(self) -> DetailedAthlete:
        return await self.execute("athlete", "getAuthenticatedAthlete", schema=DetailedAthlete)

    async def get_athlete_stats(self, athlete_id: int) -> ActivityStats:
        return await self.execute(
            f"athletes/{athlete_id}/stats", f"getAthleteStats({athlete_id})", schema=ActivityStats
        )

    async def get_athlete_zones(self) -> AthleteZones:
        return await self.execute("athlete/zones", "getAthleteZones", schema=AthleteZones)

    async def list_athlete_clubs(self) -> List[SummaryClub]:
        return await self.execute("athlete/clubs", "listAthleteClubs", schema=List[SummaryClub])

    # Activities

    async def get_recent_activities(self, per_page: int = 30) -> List[SummaryActivity]:
        return await self.execute(
            "athlete/activities",
            "getRecentActivities",
            params={"per_page": per_page},
            schema=List[SummaryActivity],
        )

    async def list_activities_page(
        self,
        page: int,
        per_page: int,
        before: Optional[int] = None,
        after: Optional[int] = None,
        retry_auth: bool = True,
    ) -> List[SummaryActivity]:
        return await self.execute(
            "athlete/activities",
            f"getAllActivities(page {page})",
            params={"page": page, "per_page": per_page, "before": before, "after": after},
            schema=List[SummaryActivity],
            retry_auth=retry_auth,
        )

    async def get_activity(self, activity_id: int) -> DetailedActivity:
        return await self.execute(
            f"activities/{activity_id}", f"getActivityById({activity_id})", schema=DetailedActivity
        )

    async def get_activity_laps(self, activity_id: int) -> List[Lap]:
        return await self.execute(
            f"activities/{activity_id}/laps", f"getActivityLaps({activity_id})", schema=List[Lap]
        )

    async def get_activity_photos(self, activity_id: int, size: int = 2048) -> List[Photo]:
        return await self.execute(
            f"activities/{activity_id}/photos",
            f"getActivityPhotos({activity_id})",
            params={"photo_sources": "true", "size": size},
            schema=List[Photo],
        )

    async def get_activity_streams(
        self,
        activity_id: int,
        types: List[str],
        resolution: Optional[str] = None,
        series_type: Optional[str] = None,
    ) -> List[Stream]:
        return await self.execute(
            f"activities/{activity_id}/streams/{','.join(types)}",
            f"getActivityStreams({activity_id})",
            params={"resolution": resolution, "series_type": series_type},
            schema=List[Stream],
        )

    # Segments

    async def list_starred_segments(self) -> List[SummarySegment]:
        return await self.execute("segments/starred", "listStarredSegments", schema=List[SummarySegment])

    async def get_segment(self, segment_id: int) -> DetailedSegment:
        return await self.execute(
            f"segments/{segment_id}", f"getSegmentById({segment_id})", schema=DetailedSegment
        )

    async def explore_segments(
        self,
        bounds: str,
        activity_type: Optional[str] = None,
        min_cat: Optional[int] = None,
        max_cat: Optional[int] = None,
    ) -> ExplorerResponse:
        return await self.execute(
            "segments/explore",
            f"exploreSegments(bounds: {bounds})",
            params={"bounds": bounds, "activity_type": activity_type, "min_cat": min_cat, "max_cat": max_cat},
            schema=ExplorerResponse,
        )

    async def star_segment(self, segment_id: int, starred: bool) -> DetailedSegment:
        return await self.execute(
            f"segments/{segment_id}/starred",
            f"starSegment(id: {segment_id}, starred: {starred})",
            method="PUT",
            json={"starred": starred},
            schema=DetailedSegment,
        )

    async def get_segment_effort(self, effort_id: int) -> DetailedSegmentEffort:
        return await self.execute(
            f"segment_efforts/{effort_id}", f"getSegmentEffort({effort_id})", schema=DetailedSegmentEffort
        )

    async def list_segment_efforts(
        self,
        segment_id: int,
        start_date_local: Optional[str] = None,
        end_date_local: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> List[DetailedSegmentEffort]:
        return await self.execute(
            "segment_efforts",
            f"listSegmentEfforts(segmentId: {segment_id})",
            params={
                "segment_id": segment_id,
                "start_date_local": start_date_local,
                "end_date_local": end_date_local,
                "per_page": per_page,
            },
            schema=List[DetailedSegmentEffort],
        )

    # Routes

    async def list_athlete_routes(self, page: int = 1, per_page: int = 30) -> List[Route]:
        return await self.execute(
            "athlete/routes",
            f"listAthleteRoutes(page={page}, perPage={per_page})",
            params={"page": page, "per_page": per_page},
            schema=List[Route],
        )

    async def get_route(self, route_id: str) -> Route:
        return await self.execute(f"routes/{route_id}", f"fetching route {route_id}", schema=Route)

    async def export_route_gpx(self, route_id: str) -> str:
        return await self.execute(
            f"routes/{route_id}/export_gpx", f"exporting route {route_id} as GPX", expect_text=True
        )

    async def export_route_tcx(self, route_id: str) -> str:
        return await self.execute(
            f"routes/{route_id}/export_tcx", f"exporting route {route_id} as TCX", expect_text=True
        )
