"""Transport negotiation and session lifecycle for MCP tool servers.

Supported transports:
  - stdio: the server is spawned as a subprocess, messages flow over pipes
  - streamable-http: the preferred network transport
  - sse: older event-stream network transport, tried when streamable HTTP fails

Every session owns exactly one transport resource. Whoever opens a session
closes it; ``connect()`` does so on exit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

from mcp import ClientSession, StdioServerParameters, types
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from mcp_bridge.config import (
    CallOptions,
    HttpServerConfig,
    ServerConnectionConfig,
    StdioServerConfig,
    parse_server_config,
)
from mcp_bridge.errors import ConfigError, SessionClosedError, TransportConnectionError
from mcp_bridge.safety import validate_process_args

logger = logging.getLogger(__name__)

STDIO = "stdio"
STREAMABLE_HTTP = "streamable-http"
SSE = "sse"


@runtime_checkable
class MCPClientSession(Protocol):
    """The part of mcp.ClientSession used by the bridge."""

    async def list_tools(self) -> Any: ...

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        read_timeout_seconds: timedelta | None = None,
    ) -> Any: ...

    async def send_ping(self) -> Any: ...

    async def send_request(self, request: Any, result_type: Any, **kwargs: Any) -> Any: ...


def _read_timeout(options: CallOptions | None) -> timedelta | None:
    if options is None or options.timeout is None:
        return None
    return timedelta(seconds=options.timeout)


class Session:
    """An initialized connection to a tool server over one transport.

    A session is open until close() is called; after that every request
    raises SessionClosedError.
    """

    def __init__(
        self,
        client: MCPClientSession,
        exit_stack: AsyncExitStack | None,
        transport: str,
    ) -> None:
        self._client = client
        self._exit_stack = exit_stack
        self._transport = transport
        self._closed = False

    @property
    def transport(self) -> str:
        return self._transport

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(self._transport)

    async def list_tools(self, options: CallOptions | None = None) -> Any:
        """Send one ``tools/list`` request."""
        self._ensure_open()
        timeout = _read_timeout(options)
        if timeout is None:
            return await self._client.list_tools()
        return await self._client.send_request(
            types.ClientRequest(types.ListToolsRequest(method="tools/list")),
            types.ListToolsResult,
            request_read_timeout_seconds=timeout,
        )

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        options: CallOptions | None = None,
    ) -> Any:
        """Send one ``tools/call`` request."""
        self._ensure_open()
        return await self._client.call_tool(
            name,
            arguments,
            read_timeout_seconds=_read_timeout(options),
        )

    async def ping(self) -> None:
        self._ensure_open()
        await self._client.send_ping()

    async def close(self) -> None:
        """Close the session and its transport. Safe to call twice.

        MCP transports run inside anyio task groups, which must be exited
        from the task that entered them. A session closed from another task
        (e.g. a shared session torn down at cleanup) fails that check; the
        transport is gone either way, so such errors are only logged.
        """
        if self._closed:
            return
        self._closed = True
        if self._exit_stack is not None:
            try:
                await self._exit_stack.aclose()
            except (RuntimeError, OSError) as e:
                logger.debug("Closing %s session failed: %s", self._transport, e)
        logger.debug("Closed %s session", self._transport)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Session(transport={self._transport!r}, {state})"


async def _discard(exit_stack: AsyncExitStack, transport: str) -> None:
    """Tear down a half-opened transport after a failed connection attempt."""
    try:
        await exit_stack.aclose()
    except Exception as e:
        # The connection error being reported is the useful one
        logger.debug("Cleanup after failed %s connection raised: %s", transport, e)


def _cancel_count() -> int:
    task = asyncio.current_task()
    return task.cancelling() if task is not None else 0


def _unwrap(error: Exception) -> Exception:
    while isinstance(error, ExceptionGroup) and len(error.exceptions) == 1:
        error = error.exceptions[0]
    return error


async def _cancelled_attempt_error(
    exit_stack: AsyncExitStack,
    transport: str,
    cancel_count: int,
) -> Exception | None:
    """Close an attempt whose handshake was cancelled and find out why.

    A transport whose background task fails (an HTTP 405, a refused
    connection) cancels its task group, and the handshake awaiting in that
    group sees CancelledError instead of the failure. Exiting the transport
    surfaces the real error and releases the cancellation.

    Returns the transport failure, or None when the task itself was
    cancelled from outside and the cancellation must propagate.
    """
    try:
        await exit_stack.aclose()
    except Exception as e:
        error = _unwrap(e)
    except BaseExceptionGroup as e:
        # Transport failures mixed with cancellations of its other tasks
        failures = e.subgroup(lambda exc: isinstance(exc, Exception))
        if failures is None:
            raise
        error = _unwrap(failures)
    else:
        error = ConnectionError(f"{transport} transport closed during the handshake")

    if _cancel_count() > cancel_count:
        return None
    return error


async def _start_session(
    exit_stack: AsyncExitStack,
    read_stream: Any,
    write_stream: Any,
    options: CallOptions,
) -> ClientSession:
    client = await exit_stack.enter_async_context(
        ClientSession(read_stream, write_stream, read_timeout_seconds=_read_timeout(options))
    )
    await client.initialize()
    return client


async def _open_stdio(config: StdioServerConfig, restrict_args: bool) -> Session:
    if restrict_args:
        validate_process_args(config.args)

    server_params = StdioServerParameters(
        command=config.command,
        args=list(config.args),
        env=config.effective_env(),
        cwd=config.cwd,
    )

    cancel_count = _cancel_count()
    exit_stack = AsyncExitStack()
    try:
        read_stream, write_stream = await exit_stack.enter_async_context(
            stdio_client(server_params)
        )
        client = await _start_session(exit_stack, read_stream, write_stream, config.options)
    except Exception as e:
        await _discard(exit_stack, STDIO)
        raise TransportConnectionError(STDIO, config.target, e) from e
    except asyncio.CancelledError:
        error = await _cancelled_attempt_error(exit_stack, STDIO, cancel_count)
        if error is None:
            raise
        raise TransportConnectionError(STDIO, config.target, error) from error

    logger.info("Connected to tool server over stdio: %s", config.command)
    return Session(client, exit_stack, STDIO)


async def _open_network(config: HttpServerConfig, transport: str) -> Session:
    headers = dict(config.headers)
    cancel_count = _cancel_count()
    exit_stack = AsyncExitStack()
    try:
        if transport == STREAMABLE_HTTP:
            read_stream, write_stream, _ = await exit_stack.enter_async_context(
                streamablehttp_client(
                    config.url,
                    headers=headers,
                    timeout=timedelta(seconds=config.timeout),
                    sse_read_timeout=timedelta(seconds=config.sse_read_timeout),
                )
            )
        else:
            # sse_client applies headers to the event-stream GET and every POST
            read_stream, write_stream = await exit_stack.enter_async_context(
                sse_client(
                    config.url,
                    headers=headers,
                    timeout=config.timeout,
                    sse_read_timeout=config.sse_read_timeout,
                )
            )
        client = await _start_session(exit_stack, read_stream, write_stream, config.options)
    except Exception:
        await _discard(exit_stack, transport)
        raise
    except asyncio.CancelledError:
        error = await _cancelled_attempt_error(exit_stack, transport, cancel_count)
        if error is None:
            raise
        raise error from None

    logger.info("Connected to tool server over %s: %s", transport, config.url)
    return Session(client, exit_stack, transport)


async def _open_http(config: HttpServerConfig) -> Session:
    if not config.url:
        raise ConfigError("'url' is required for network transports")

    try:
        return await _open_network(config, STREAMABLE_HTTP)
    except Exception as e:
        logger.debug(
            "Streamable HTTP connection to %s failed (%s: %s), falling back to SSE",
            config.url,
            type(e).__name__,
            e,
        )

    try:
        return await _open_network(config, SSE)
    except Exception as e:
        raise TransportConnectionError(SSE, config.url, e) from e


async def open_session(
    config: ServerConnectionConfig | dict[str, Any],
    *,
    restrict_args: bool = False,
) -> Session:
    """Open a session to the tool server described by ``config``.

    The caller owns the returned session and must close it.

    Args:
        config: Connection config, or a raw mapping to parse.
        restrict_args: Screen stdio arguments with the safety denylist
            before spawning.

    Raises:
        ConfigError: If the config is invalid (before any connection attempt).
        SafetyRejection: If restrict_args is set and an argument is rejected.
        TransportConnectionError: If no transport could be established.
    """
    config = parse_server_config(config)
    if isinstance(config, StdioServerConfig):
        return await _open_stdio(config, restrict_args)
    return await _open_http(config)


@asynccontextmanager
async def connect(
    config: ServerConnectionConfig | dict[str, Any],
    *,
    restrict_args: bool = False,
) -> AsyncIterator[Session]:
    """Open a session for the duration of an ``async with`` block.

    Usage:
        async with connect({"url": "http://localhost:8000/mcp"}) as session:
            tools = await session.list_tools()
    """
    session = await open_session(config, restrict_args=restrict_args)
    try:
        yield session
    finally:
        await session.close()
