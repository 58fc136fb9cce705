import sys
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from strava_mcp.config import ENV_PATH


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_PATH, env_file_encoding="utf-8", extra="ignore")

    # Cache lifetimes (seconds)
    CACHE_TTL_ACTIVITIES: float = 300
    CACHE_TTL_STATS: float = 600
    CACHE_TTL_PERFORMANCE: float = 900
    CACHE_TTL_TRENDS: float = 300

    DASHBOARD_TIMEZONE: str = "America/New_York"
    RECENT_ACTIVITIES_COUNT: int = 30
    TRENDS_PAGE_SIZE: int = 200

    # Chat
    ANTHROPIC_API_KEY: Optional[str] = None
    LLM_MODEL: str = "claude-sonnet-4-5-20250929"
    LLM_MAX_TOKENS: int = 4096
    MAX_TOOL_ROUNDS: int = 10
    CHAT_RATE_LIMIT: str = "10/minute"

    # How the chat backend launches the MCP server (stdio)
    MCP_SERVER_COMMAND: str = sys.executable
    MCP_SERVER_ARGS: List[str] = ["-m", "strava_mcp.strava_server"]

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    HOST: str = "127.0.0.1"
    PORT: int = 8001
    LOG_LEVEL: str = "INFO"


settings = Settings()
