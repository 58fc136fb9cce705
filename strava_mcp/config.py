"""
Settings for the Strava MCP server.
Values come from the process environment first, then from the project's .env file.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_PATH = Path(os.getenv("STRAVA_ENV_FILE", str(PROJECT_ROOT / ".env")))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_PATH, env_file_encoding="utf-8", extra="ignore")

    # OAuth credentials
    STRAVA_CLIENT_ID: Optional[str] = None
    STRAVA_CLIENT_SECRET: Optional[str] = None
    STRAVA_ACCESS_TOKEN: Optional[str] = None
    STRAVA_REFRESH_TOKEN: Optional[str] = None
    STRAVA_TOKEN_EXPIRES_AT: Optional[int] = None

    # Upstream endpoints
    STRAVA_API_BASE_URL: str = "https://www.strava.com/api/v3"
    STRAVA_OAUTH_TOKEN_URL: str = "https://www.strava.com/oauth/token"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Bulk activity fetching
    MAX_API_CALLS: int = 10
    MAX_ACTIVITIES: int = 500
    ACTIVITIES_PER_PAGE: int = 200
    PAGE_DELAY_SECONDS: float = 0.1

    # Where export-route-gpx / export-route-tcx write files
    ROUTE_EXPORT_PATH: Optional[str] = None

    LOG_LEVEL: str = "INFO"


settings = Settings()
