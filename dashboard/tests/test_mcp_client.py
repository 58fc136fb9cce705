import pytest

from dashboard import deps
from dashboard.mcp_client import MCPClient
from strava_mcp.credentials import CredentialStore, Credentials

from strava_fakes import ENV_CONTENT


@pytest.fixture
def store(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(ENV_CONTENT)
    credentials = Credentials(
        access_token="startup-access", refresh_token="startup-refresh", client_id="123", client_secret="secret"
    )
    return CredentialStore(credentials, env_path=env_file)


def test_server_params_use_store_credentials(store):
    params = MCPClient(store, command="strava-mcp", args=[]).server_params()

    assert params.command == "strava-mcp"
    assert params.env["STRAVA_ACCESS_TOKEN"] == "startup-access"
    assert params.env["STRAVA_REFRESH_TOKEN"] == "startup-refresh"
    assert params.env["STRAVA_CLIENT_ID"] == "123"
    assert params.env["STRAVA_ENV_FILE"] == str(store.env_path)


@pytest.mark.asyncio
async def test_tokens_rotated_before_first_session_reach_the_server(store):
    client = MCPClient(store)

    await store.update("rotated-access", "rotated-refresh")
    params = client.server_params()

    assert params.env["STRAVA_ACCESS_TOKEN"] == "rotated-access"
    assert params.env["STRAVA_REFRESH_TOKEN"] == "rotated-refresh"


def test_shared_mcp_client_follows_dashboard_credentials(monkeypatch, store):
    monkeypatch.setattr(deps, "_strava_client", None)
    monkeypatch.setattr(deps, "_mcp_client", None)
    monkeypatch.setattr(deps.CredentialStore, "from_settings", classmethod(lambda cls, settings: store))

    mcp = deps.get_mcp_client()

    assert mcp.store is deps.get_strava_client().store
