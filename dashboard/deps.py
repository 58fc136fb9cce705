from typing import Optional

from anthropic import AsyncAnthropic

from strava_mcp.client import StravaClient
from strava_mcp.config import settings as strava_settings
from strava_mcp.credentials import CredentialStore
from strava_mcp.errors import ConfigurationError

from .cache import TTLCache, cache
from .config import settings
from .mcp_client import MCPClient

_strava_client: Optional[StravaClient] = None
_llm_client: Optional[AsyncAnthropic] = None
_mcp_client: Optional[MCPClient] = None


def get_strava_client() -> StravaClient:
    global _strava_client
    if _strava_client is None:
        _strava_client = StravaClient(CredentialStore.from_settings(strava_settings))
    return _strava_client


def get_cache() -> TTLCache:
    return cache


def get_llm_client() -> AsyncAnthropic:
    global _llm_client
    if _llm_client is None:
        if not settings.ANTHROPIC_API_KEY:
            raise ConfigurationError("ANTHROPIC_API_KEY is missing or not set in the .env file.")
        _llm_client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
    return _llm_client


def get_mcp_client() -> MCPClient:
    global _mcp_client
    if _mcp_client is None:
        _mcp_client = MCPClient(get_strava_client().store)
    return _mcp_client


async def close_clients() -> None:
    """Release the shared clients; called on application shutdown."""
    global _strava_client, _llm_client, _mcp_client
    if _mcp_client is not None:
        await _mcp_client.close()
        _mcp_client = None
    if _strava_client is not None:
        await _strava_client.aclose()
        _strava_client = None
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
