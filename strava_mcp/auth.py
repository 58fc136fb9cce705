"""
OAuth refresh-token exchange against Strava's token endpoint.
"""

import asyncio
import logging
from typing import Optional

import httpx

from .config import settings
from .credentials import CredentialStore, Credentials
from .errors import ConfigurationError, TokenRefreshError

logger = logging.getLogger(__name__)


class TokenRefresher:
    def __init__(self, store: CredentialStore, http_client: httpx.AsyncClient, token_url: Optional[str] = None):
        self.store = store
        self.http_client = http_client
        self.token_url = token_url or settings.STRAVA_OAUTH_TOKEN_URL
        # Single-flight: concurrent 401s share one refresh
        self._lock = asyncio.Lock()

    async def refresh(self, stale_token: Optional[str] = None) -> Credentials:
        """
        Exchange the stored refresh token for a new token pair.
        If `stale_token` is given and the store already holds a different access token,
        another caller refreshed while we waited and no request is made.
        """
        if not self.store.credentials.can_refresh:
            raise ConfigurationError(
                "Missing refresh credentials in .env (STRAVA_REFRESH_TOKEN, STRAVA_CLIENT_ID, STRAVA_CLIENT_SECRET)"
            )

        async with self._lock:
            current = self.store.credentials
            if stale_token is not None and current.has_access_token and current.access_token != stale_token:
                logger.info("Access token was already refreshed by a concurrent request")
                return current

            logger.info("Refreshing Strava access token...")
            try:
                response = await self.http_client.post(
                    self.token_url,
                    data={
                        "client_id": current.client_id,
                        "client_secret": current.client_secret,
                        "refresh_token": current.refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
            except httpx.HTTPError as e:
                logger.error(f"Token refresh request failed: {str(e)}")
                raise TokenRefreshError(f"Failed to reach Strava token endpoint: {str(e)}", cause=e) from e

            if response.status_code != 200:
                logger.error(f"Token refresh rejected ({response.status_code}): {response.text}")
                raise TokenRefreshError(f"Failed to refresh Strava token ({response.status_code}): {response.text}")

            try:
                data = response.json()
            except ValueError as e:
                raise TokenRefreshError("Token refresh response was not valid JSON", cause=e) from e
            if not isinstance(data, dict):
                data = {}

            access_token = data.get("access_token")
            refresh_token = data.get("refresh_token")
            if not access_token or not refresh_token:
                logger.error("Token refresh response missing access_token or refresh_token")
                raise TokenRefreshError("Refresh response missing required tokens")

            credentials = await self.store.update(access_token, refresh_token, data.get("expires_at"))
            logger.info(f"Successfully refreshed Strava token (expires at {data.get('expires_at')})")
            return credentials
