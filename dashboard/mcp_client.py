"""
Client side of the Strava MCP server, used by the chat route.
The server runs as a child process over stdio; one session is shared by the whole app.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.types import CallToolResult, Tool

from strava_mcp.credentials import CredentialStore

from .config import settings

logger = logging.getLogger(__name__)


class MCPConnectionError(Exception):
    """The MCP server could not be started or initialized."""


class MCPClient:
    """
    Starts the server with the credentials currently held by `store`, so tokens
    rotated by the dashboard before the first chat reach the child process.
    """

    def __init__(self, store: CredentialStore, command: Optional[str] = None, args: Optional[List[str]] = None):
        self.store = store
        self.command = command or settings.MCP_SERVER_COMMAND
        self.args = list(args if args is not None else settings.MCP_SERVER_ARGS)
        self._session: Optional[ClientSession] = None
        self._task: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()
        self._closing = asyncio.Event()
        self._error: Optional[BaseException] = None
        self._lock = asyncio.Lock()

    def server_params(self) -> StdioServerParameters:
        credentials = self.store.credentials
        env = dict(os.environ)
        values = {
            "STRAVA_CLIENT_ID": credentials.client_id,
            "STRAVA_CLIENT_SECRET": credentials.client_secret,
            "STRAVA_ACCESS_TOKEN": credentials.access_token,
            "STRAVA_REFRESH_TOKEN": credentials.refresh_token,
        }
        for name, value in values.items():
            if value:
                env[name] = value
        if self.store.env_path is not None:
            env["STRAVA_ENV_FILE"] = str(self.store.env_path)
        return StdioServerParameters(command=self.command, args=self.args, env=env)

    async def _serve(self) -> None:
        # The stdio transport's task group must be entered and exited by the same task,
        # so the session lives in its own task until close() is called.
        params = self.server_params()
        try:
            async with stdio_client(params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    self._session = session
                    logger.info(f"Connected to MCP server: {params.command} {' '.join(params.args)}")
                    self._ready.set()
                    await self._closing.wait()
        except Exception as e:
            logger.error(f"MCP session failed: {str(e)}", exc_info=True)
            self._error = e
        finally:
            self._session = None
            self._ready.set()

    async def session(self) -> ClientSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._ready = asyncio.Event()
            self._closing = asyncio.Event()
            self._error = None
            self._task = asyncio.create_task(self._serve())
            await self._ready.wait()
            if self._session is None:
                raise MCPConnectionError(f"Failed to connect to MCP server: {self._error}") from self._error
            return self._session

    async def list_tools(self) -> List[Tool]:
        session = await self.session()
        result = await session.list_tools()
        return result.tools

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> CallToolResult:
        session = await self.session()
        logger.info(f"Calling MCP tool {name}")
        return await session.call_tool(name, arguments or {})

    async def close(self) -> None:
        if self._task is None:
            return
        self._closing.set()
        await self._task
        self._task = None
        logger.info("MCP session closed")
