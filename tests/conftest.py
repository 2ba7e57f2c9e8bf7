"""Test fixtures for mcp-bridge."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest
from mcp import types

from mcp_bridge.transport import Session

# =============================================================================
# Fake tool server
# =============================================================================


def make_tool(
    name: str, input_schema: dict[str, Any], description: str | None = None
) -> types.Tool:
    """Build an MCP Tool as a server would report it."""
    return types.Tool(name=name, description=description, inputSchema=input_schema)


def text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


ECHO_SCHEMA = {
    "type": "object",
    "properties": {"text": {"type": "string", "description": "Text to echo"}},
    "required": ["text"],
}

ADD_SCHEMA = {
    "type": "object",
    "properties": {
        "a": {"type": "number"},
        "b": {"type": "number"},
    },
    "required": ["a", "b"],
}


class FakeServer:
    """Session opener backed by an in-memory tool server.

    Every call to the instance opens a new Session around a mocked MCP
    ClientSession, so tests can count sessions and see which were closed.
    """

    def __init__(
        self,
        tools: list[types.Tool] | None = None,
        responses: dict[str, Any] | None = None,
    ) -> None:
        self.tools = tools if tools is not None else []
        self.responses = responses or {}
        self.sessions: list[Session] = []
        self.clients: list[AsyncMock] = []
        self.open_calls: list[dict[str, Any]] = []
        self._call_log: list[tuple[str, dict[str, Any]]] = []
        self.list_error: Exception | None = None
        self.open_error: Exception | None = None

    def set_response(self, tool_name: str, response: Any) -> None:
        """Set the result (or exception to raise) for a tool."""
        self.responses[tool_name] = response

    async def _call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        read_timeout_seconds: Any = None,
    ) -> Any:
        self._call_log.append((name, arguments or {}))
        # Yield so concurrent calls interleave
        await asyncio.sleep(0)
        response = self.responses.get(name, text_result(f"{name} ok"))
        if isinstance(response, Exception):
            raise response
        return response

    async def _list_tools(self) -> types.ListToolsResult:
        if self.list_error is not None:
            raise self.list_error
        return types.ListToolsResult(tools=self.tools)

    async def __call__(self, config: Any, *, restrict_args: bool = False) -> Session:
        self.open_calls.append({"config": config, "restrict_args": restrict_args})
        if self.open_error is not None:
            raise self.open_error

        client = AsyncMock()
        client.list_tools = AsyncMock(side_effect=self._list_tools)
        client.call_tool = AsyncMock(side_effect=self._call_tool)
        client.send_ping = AsyncMock(return_value=None)

        session = Session(client, None, "fake")
        self.clients.append(client)
        self.sessions.append(session)
        return session

    @property
    def call_log(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._call_log)

    @property
    def open_count(self) -> int:
        return len(self.sessions)


@pytest.fixture
def stdio_config() -> dict[str, Any]:
    return {"command": "npx", "args": ["-y", "@modelcontextprotocol/server-everything"]}


@pytest.fixture
def http_config() -> dict[str, Any]:
    return {
        "url": "http://localhost:8000/mcp",
        "headers": {"Authorization": "Bearer token123"},
    }


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer(
        tools=[
            make_tool("echo", ECHO_SCHEMA, "Echo text back"),
            make_tool("add", ADD_SCHEMA, "Add two numbers"),
        ]
    )
