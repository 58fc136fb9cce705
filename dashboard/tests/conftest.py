import httpx
import pytest
from fastapi.testclient import TestClient

from dashboard.cache import TTLCache
from dashboard.deps import get_cache, get_strava_client
from dashboard.limiter import limiter
from dashboard.main import app
from strava_mcp.client import StravaClient
from strava_mcp.credentials import CredentialStore, Credentials

from dashboard_fakes import FakeClock
from strava_fakes import FakeStrava


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


@pytest.fixture
def strava():
    return FakeStrava()


@pytest.fixture
def strava_client(strava):
    store = CredentialStore(
        Credentials(access_token="old-access", refresh_token="old-refresh", client_id="123", client_secret="secret")
    )
    return StravaClient(store, http_client=httpx.AsyncClient(transport=httpx.MockTransport(strava.handler)))


@pytest.fixture
def api(strava_client, cache):
    limiter.reset()
    app.dependency_overrides[get_strava_client] = lambda: strava_client
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()
