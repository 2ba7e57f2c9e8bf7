"""Tests for OperationAdapter invocation and result serialization."""

import json
import logging

import pytest
from mcp import types

from mcp_bridge import (
    ArgumentValidationError,
    CallOptions,
    EphemeralSessions,
    InvocationError,
    OperationAdapter,
    OperationDescriptor,
    SessionClosedError,
    TranslationError,
    TransportConnectionError,
    parse_server_config,
    serialize_content,
)
from tests.conftest import ADD_SCHEMA, ECHO_SCHEMA, FakeServer, text_result


@pytest.fixture
def sessions(fake_server: FakeServer, stdio_config) -> EphemeralSessions:
    return EphemeralSessions(parse_server_config(stdio_config), opener=fake_server)


def _adapter(sessions, name="echo", schema=ECHO_SCHEMA, description="Echo text back", **kw):
    descriptor = OperationDescriptor(name, description, schema)
    return OperationAdapter.from_descriptor(descriptor, sessions, **kw)


class TestSerializeContent:
    def test_text_content(self) -> None:
        assert serialize_content(text_result("hi")) == '[{"type":"text","text":"hi"}]'

    def test_multiple_items_in_order(self) -> None:
        result = types.CallToolResult(
            content=[
                types.TextContent(type="text", text="one"),
                types.ImageContent(type="image", data="aGk=", mimeType="image/png"),
            ]
        )

        decoded = json.loads(serialize_content(result))

        assert decoded == [
            {"type": "text", "text": "one"},
            {"type": "image", "data": "aGk=", "mimeType": "image/png"},
        ]

    def test_non_ascii_kept(self) -> None:
        assert "Tromsø" in serialize_content(text_result("Tromsø"))

    def test_empty_content(self) -> None:
        assert serialize_content(types.CallToolResult(content=[])) == "[]"

    def test_mapping_result(self) -> None:
        result = {"content": [{"type": "text", "text": "raw"}]}
        assert json.loads(serialize_content(result)) == [{"type": "text", "text": "raw"}]


class TestFromDescriptor:
    def test_binds_metadata(self, sessions) -> None:
        adapter = _adapter(sessions)

        assert adapter.name == "echo"
        assert adapter.description == "Echo text back"
        assert adapter.sessions is sessions
        assert adapter.options == CallOptions()

    def test_untranslatable_schema(self, sessions) -> None:
        with pytest.raises(TranslationError, match="broken"):
            _adapter(sessions, name="broken", schema={"type": "object"})

    def test_args_schema(self, sessions) -> None:
        schema = _adapter(sessions).args_schema

        assert schema["type"] == "object"
        assert schema["required"] == ["text"]
        assert schema["properties"]["text"] == {"type": "string", "description": "Text to echo"}


class TestSignature:
    def test_required_before_optional(self, sessions) -> None:
        schema = {
            "type": "object",
            "properties": {
                "limit": {"type": "integer"},
                "query": {"type": "string"},
                "mode": {"type": "string", "enum": ["fast", "deep"]},
            },
            "required": ["query"],
        }

        adapter = _adapter(sessions, name="search", schema=schema)

        assert adapter.signature() == (
            "search(query: str, limit: int | None = None, "
            "mode: Literal['fast', 'deep'] | None = None)"
        )

    def test_repr(self, sessions) -> None:
        assert repr(_adapter(sessions)) == "echo(text: str): Echo text back"


class TestInvoke:
    @pytest.mark.asyncio
    async def test_returns_serialized_content(self, sessions, fake_server) -> None:
        fake_server.set_response("echo", text_result("hello"))

        result = await _adapter(sessions).invoke({"text": "hello"})

        assert result == '[{"type":"text","text":"hello"}]'
        assert fake_server.call_log == [("echo", {"text": "hello"})]

    @pytest.mark.asyncio
    async def test_session_closed_after_call(self, sessions, fake_server) -> None:
        await _adapter(sessions).invoke({"text": "x"})

        assert fake_server.open_count == 1
        assert fake_server.sessions[0].closed

    @pytest.mark.asyncio
    async def test_kwargs_call(self, sessions, fake_server) -> None:
        await _adapter(sessions, name="add", schema=ADD_SCHEMA)(a=1, b=2.5)
        assert fake_server.call_log == [("add", {"a": 1, "b": 2.5})]

    @pytest.mark.asyncio
    async def test_options_forwarded(self, sessions, fake_server) -> None:
        adapter = _adapter(sessions, options=CallOptions(timeout=7))

        await adapter.invoke({"text": "x"})

        kwargs = fake_server.clients[0].call_tool.call_args[1]
        assert kwargs["read_timeout_seconds"].total_seconds() == 7

    @pytest.mark.asyncio
    async def test_invalid_args_rejected_before_session(self, sessions, fake_server) -> None:
        adapter = _adapter(sessions)

        with pytest.raises(ArgumentValidationError):
            await adapter.invoke({"text": 42})
        with pytest.raises(ArgumentValidationError):
            await adapter.invoke({})
        with pytest.raises(ArgumentValidationError, match="unexpected"):
            await adapter.invoke({"text": "x", "extra": 1})

        assert fake_server.open_count == 0

    @pytest.mark.asyncio
    async def test_optional_none_not_sent(self, sessions, fake_server) -> None:
        schema = {
            "type": "object",
            "properties": {"q": {"type": "string"}, "page": {"type": "number"}},
            "required": ["q"],
        }

        await _adapter(sessions, name="search", schema=schema).invoke({"q": "a", "page": None})

        assert fake_server.call_log == [("search", {"q": "a"})]

    @pytest.mark.asyncio
    async def test_remote_failure_wrapped(self, sessions, fake_server) -> None:
        cause = RuntimeError("server crashed")
        fake_server.set_response("echo", cause)

        with pytest.raises(InvocationError) as exc_info:
            await _adapter(sessions).invoke({"text": "x"})

        assert exc_info.value.cause is cause
        assert exc_info.value.tool_name == "echo"
        assert exc_info.value.tool_args == {"text": "x"}
        # The session is released even when the call fails
        assert fake_server.sessions[0].closed

    @pytest.mark.asyncio
    async def test_bridge_errors_not_rewrapped(self, sessions, fake_server) -> None:
        fake_server.set_response("echo", SessionClosedError("fake"))

        with pytest.raises(SessionClosedError):
            await _adapter(sessions).invoke({"text": "x"})

    @pytest.mark.asyncio
    async def test_connection_failure_propagates(self, sessions, fake_server) -> None:
        fake_server.open_error = TransportConnectionError("stdio", "npx", OSError("gone"))

        with pytest.raises(TransportConnectionError):
            await _adapter(sessions).invoke({"text": "x"})

    @pytest.mark.asyncio
    async def test_error_result_returned_with_warning(
        self, sessions, fake_server, caplog: pytest.LogCaptureFixture
    ) -> None:
        fake_server.set_response("echo", text_result("bad input", is_error=True))

        with caplog.at_level(logging.WARNING, logger="mcp_bridge.adapter"):
            result = await _adapter(sessions).invoke({"text": "x"})

        assert json.loads(result) == [{"type": "text", "text": "bad input"}]
        assert "reported an error" in caplog.text

    @pytest.mark.asyncio
    async def test_repeated_invocations_use_fresh_sessions(self, sessions, fake_server) -> None:
        adapter = _adapter(sessions)

        await adapter.invoke({"text": "1"})
        await adapter.invoke({"text": "2"})

        assert fake_server.open_count == 2
        assert fake_server.sessions[0] is not fake_server.sessions[1]
        assert all(s.closed for s in fake_server.sessions)
