import httpx
import pytest

from strava_mcp.client import StravaClient
from strava_mcp.credentials import CredentialStore, Credentials

from strava_fakes import ENV_CONTENT, FakeStrava


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(ENV_CONTENT)
    return path


@pytest.fixture
def store(env_file):
    credentials = Credentials(
        access_token="old-access",
        refresh_token="old-refresh",
        client_id="123",
        client_secret="secret",
    )
    return CredentialStore(credentials, env_path=env_file)


@pytest.fixture
def strava():
    return FakeStrava()


@pytest.fixture
def client(store, strava):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(strava.handler))
    return StravaClient(store, http_client=http_client)
