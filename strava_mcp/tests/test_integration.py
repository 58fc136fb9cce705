"""
Live checks against the real Strava API.
Run with: pytest -m integration (needs a valid STRAVA_ACCESS_TOKEN in .env)
"""

import pytest

from strava_mcp.client import StravaClient
from strava_mcp.config import settings
from strava_mcp.credentials import PLACEHOLDER_ACCESS_TOKEN, CredentialStore
from strava_mcp.pagination import fetch_all

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not settings.STRAVA_ACCESS_TOKEN or settings.STRAVA_ACCESS_TOKEN == PLACEHOLDER_ACCESS_TOKEN,
        reason="STRAVA_ACCESS_TOKEN not configured",
    ),
]


@pytest.mark.asyncio
async def test_profile_and_first_page():
    client = StravaClient(CredentialStore.from_settings(settings))
    try:
        athlete = await client.get_authenticated_athlete()
        assert athlete.id > 0

        result = await fetch_all(client, per_page=5, ceiling_calls=1, max_results=5)
        assert result.api_calls == 1
        assert len(result.items) <= 5
    finally:
        await client.aclose()
