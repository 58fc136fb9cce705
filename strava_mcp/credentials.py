"""
Credential store for the Strava OAuth tokens.
Tokens are held in memory, replaced wholesale on refresh, and written back to the .env file.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PLACEHOLDER_ACCESS_TOKEN = "YOUR_STRAVA_ACCESS_TOKEN_HERE"

ACCESS_TOKEN_KEY = "STRAVA_ACCESS_TOKEN"
REFRESH_TOKEN_KEY = "STRAVA_REFRESH_TOKEN"


@dataclass(frozen=True)
class Credentials:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    expires_at: Optional[int] = None

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token) and self.access_token != PLACEHOLDER_ACCESS_TOKEN

    @property
    def can_refresh(self) -> bool:
        return all([self.refresh_token, self.client_id, self.client_secret])


def update_tokens_in_env_file(env_path: Union[str, Path], access_token: str, refresh_token: str) -> None:
    """Rewrite the two token lines in place, appending them if absent. Other lines are left untouched."""
    path = Path(env_path)
    tokens = {ACCESS_TOKEN_KEY: access_token, REFRESH_TOKEN_KEY: refresh_token}
    lines = path.read_text(encoding="utf-8").splitlines() if path.exists() else []

    written = set()
    for index, line in enumerate(lines):
        for key, value in tokens.items():
            if line.startswith(f"{key}="):
                lines[index] = f"{key}={value}"
                written.add(key)
    lines.extend(f"{key}={value}" for key, value in tokens.items() if key not in written)

    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


class CredentialStore:
    def __init__(self, credentials: Credentials, env_path: Optional[Union[str, Path]] = None):
        self._credentials = credentials
        self.env_path = Path(env_path) if env_path else None

    @classmethod
    def from_settings(cls, settings) -> "CredentialStore":
        credentials = Credentials(
            access_token=settings.STRAVA_ACCESS_TOKEN,
            refresh_token=settings.STRAVA_REFRESH_TOKEN,
            client_id=settings.STRAVA_CLIENT_ID,
            client_secret=settings.STRAVA_CLIENT_SECRET,
            expires_at=settings.STRAVA_TOKEN_EXPIRES_AT,
        )
        env_path = settings.model_config.get("env_file")
        return cls(credentials, env_path=env_path)

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def require_access_token(self) -> str:
        if not self._credentials.has_access_token:
            logger.error("Missing or placeholder STRAVA_ACCESS_TOKEN")
            raise ConfigurationError("STRAVA_ACCESS_TOKEN is missing or not set in the .env file.")
        return self._credentials.access_token

    async def update(self, access_token: str, refresh_token: str, expires_at: Optional[int] = None) -> Credentials:
        """Swap in a freshly issued token pair and persist it. A failed write is logged, not raised."""
        self._credentials = replace(
            self._credentials,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        logger.info("Strava tokens updated in memory")

        if self.env_path is None:
            logger.warning("No .env path configured; refreshed tokens will not survive a restart")
            return self._credentials

        try:
            await asyncio.to_thread(update_tokens_in_env_file, self.env_path, access_token, refresh_token)
            logger.info(f"Persisted refreshed tokens to {self.env_path}")
        except OSError as e:
            logger.warning(f"Failed to persist refreshed tokens to {self.env_path}: {str(e)}")
        return self._credentials
