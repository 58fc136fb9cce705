import json

import pytest
from mcp.types import CallToolResult, TextContent

from dashboard import deps
from dashboard.chat import converse
from dashboard.config import settings
from dashboard.deps import get_llm_client, get_mcp_client
from dashboard.main import app
from dashboard.mcp_client import MCPConnectionError

from dashboard_fakes import FakeLLM, FakeMCP, text_response, tool_use_response

QUESTION = [{"role": "user", "content": "How far did I run this week?"}]


@pytest.fixture
def chat_api(api):
    def install(llm, mcp):
        app.dependency_overrides[get_llm_client] = lambda: llm
        app.dependency_overrides[get_mcp_client] = lambda: mcp
        return api

    return install


def test_chat_runs_tools_and_returns_final_answer(chat_api):
    llm = FakeLLM(
        tool_use_response(("get-athlete-profile", {}), ("get-activity-details", {"activityId": 5}), text="Checking"),
        text_response("You ran 5 km."),
    )
    mcp = FakeMCP({"get-athlete-profile": "Jo Doe", "get-activity-details": RuntimeError("boom")})

    response = chat_api(llm, mcp).post("/api/chat", json={"messages": QUESTION})

    assert response.status_code == 200
    body = response.json()
    assert body["stop_reason"] == "end_turn"
    assert body["content"][0]["text"] == "You ran 5 km."

    assert mcp.calls == [("get-athlete-profile", {}), ("get-activity-details", {"activityId": 5})]

    first, second = llm.messages.calls
    assert [tool["name"] for tool in first["tools"]] == ["get-athlete-profile", "get-activity-details"]
    assert first["model"] == settings.LLM_MODEL
    assert first["messages"] == QUESTION

    assistant, results = second["messages"][1:]
    assert assistant["role"] == "assistant"
    assert [block["type"] for block in assistant["content"]] == ["text", "tool_use", "tool_use"]
    assert results["role"] == "user"
    ok, failed = results["content"]
    assert ok == {"type": "tool_result", "tool_use_id": "toolu_1", "content": "Jo Doe"}
    assert failed["tool_use_id"] == "toolu_2"
    assert failed["is_error"] is True
    assert json.loads(failed["content"]) == {"error": "boom"}


@pytest.mark.asyncio
async def test_tool_error_result_is_flagged():
    error = CallToolResult(content=[TextContent(type="text", text="Strava API rate limit exceeded")], isError=True)
    llm = FakeLLM(tool_use_response(("get-athlete-profile", {})), text_response("Try later."))

    await converse(llm, FakeMCP({"get-athlete-profile": error}), list(QUESTION))

    result = llm.messages.calls[1]["messages"][-1]["content"][0]
    assert result["is_error"] is True
    assert result["content"] == "Strava API rate limit exceeded"


@pytest.mark.asyncio
async def test_tool_rounds_are_bounded(monkeypatch):
    monkeypatch.setattr(settings, "MAX_TOOL_ROUNDS", 2)
    llm = FakeLLM(tool_use_response(("get-athlete-profile", {})))
    mcp = FakeMCP()

    response = await converse(llm, mcp, list(QUESTION))

    assert response.stop_reason == "tool_use"
    assert len(llm.messages.calls) == 3
    assert len(mcp.calls) == 2


@pytest.mark.parametrize("messages", [
    [],
    [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
    [{"role": "system", "content": "hi"}],
])
def test_invalid_conversations_are_rejected(chat_api, messages):
    llm = FakeLLM(text_response("unused"))

    response = chat_api(llm, FakeMCP()).post("/api/chat", json={"messages": messages})

    assert response.status_code == 422
    assert llm.messages.calls == []


def test_missing_api_key(api, monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)
    monkeypatch.setattr(deps, "_llm_client", None)
    app.dependency_overrides[get_mcp_client] = lambda: FakeMCP()

    response = api.post("/api/chat", json={"messages": QUESTION})

    assert response.status_code == 500
    assert "ANTHROPIC_API_KEY" in response.json()["error"]


def test_mcp_connection_failure(chat_api):
    class BrokenMCP(FakeMCP):
        async def list_tools(self):
            raise MCPConnectionError("Could not start the Strava MCP server")

    response = chat_api(FakeLLM(text_response("unused")), BrokenMCP()).post("/api/chat", json={"messages": QUESTION})

    assert response.status_code == 500
    assert response.json()["detail"] == "Could not start the Strava MCP server"


def test_chat_is_rate_limited(chat_api):
    client = chat_api(FakeLLM(text_response("Hi!")), FakeMCP())

    statuses = [client.post("/api/chat", json={"messages": QUESTION}).status_code for _ in range(11)]

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429
