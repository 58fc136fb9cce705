"""Fakes for the dashboard tests: a controllable clock, an MCP client and an LLM client."""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from anthropic.types import TextBlock, ToolUseBlock
from mcp.types import CallToolResult, TextContent, Tool


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def iso_days_ago(days, now=None):
    moment = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeMCP:
    """Answers call_tool from a name -> text (or exception) map."""

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []
        self.tools = [
            Tool(
                name="get-athlete-profile",
                description="Fetches the profile information for the authenticated athlete.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="get-activity-details",
                description="Fetches detailed information about a specific activity using its ID.",
                inputSchema={"type": "object", "properties": {"activityId": {"type": "integer"}}, "required": ["activityId"]},
            ),
        ]

    async def list_tools(self):
        return self.tools

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        result = self.results.get(name, "ok")
        if isinstance(result, Exception):
            raise result
        if isinstance(result, CallToolResult):
            return result
        return CallToolResult(content=[TextContent(type="text", text=result)], isError=False)


def text_response(text, stop_reason="end_turn"):
    return SimpleNamespace(content=[TextBlock(type="text", text=text)], stop_reason=stop_reason)


def tool_use_response(*calls, text=None):
    content = [TextBlock(type="text", text=text)] if text else []
    for index, (name, arguments) in enumerate(calls, start=1):
        content.append(ToolUseBlock(type="tool_use", id=f"toolu_{index}", name=name, input=arguments))
    return SimpleNamespace(content=content, stop_reason="tool_use")


class FakeMessages:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(copy.deepcopy(kwargs))
        await asyncio.sleep(0)
        return self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]


class FakeLLM:
    def __init__(self, *responses):
        self.messages = FakeMessages(responses)


class ConcurrencyProbe:
    """Dashboard client stand-in that records how many calls overlap."""

    def __init__(self, stats, zones, activities):
        self.stats = stats
        self.zones = zones
        self.activities = activities
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = []

    async def _call(self, name, result):
        self.calls.append(name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        for _ in range(3):
            await asyncio.sleep(0)
        self.in_flight -= 1
        return result

    async def get_authenticated_athlete(self):
        return await self._call("athlete", SimpleNamespace(id=42))

    async def get_athlete_stats(self, athlete_id):
        return await self._call("stats", self.stats)

    async def get_athlete_zones(self):
        return await self._call("zones", self.zones)

    async def get_recent_activities(self, per_page=30):
        return await self._call("recent", self.activities)

    async def list_activities_page(self, page, per_page, before=None, after=None, retry_auth=True):
        return await self._call("page", self.activities)
