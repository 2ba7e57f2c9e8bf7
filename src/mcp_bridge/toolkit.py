"""Toolkit exposing a tool server's catalog to a host application."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from mcp_bridge.adapter import OperationAdapter
from mcp_bridge.config import ServerConnectionConfig, parse_server_config
from mcp_bridge.discovery import OperationDescriptor, discover_operations
from mcp_bridge.errors import ToolkitNotInitializedError
from mcp_bridge.sessions import (
    EphemeralSessions,
    SessionOpener,
    SessionPolicy,
    make_session_provider,
)
from mcp_bridge.transport import open_session

logger = logging.getLogger(__name__)


def _first_by_name(descriptors: list[OperationDescriptor]) -> list[OperationDescriptor]:
    """Keep the first descriptor for each tool name, in server order."""
    seen: set[str] = set()
    unique: list[OperationDescriptor] = []
    duplicates: list[str] = []
    for descriptor in descriptors:
        if descriptor.name in seen:
            duplicates.append(descriptor.name)
            continue
        seen.add(descriptor.name)
        unique.append(descriptor)

    if duplicates:
        logger.warning(
            "Server reported duplicate tool names, keeping the first of each: %s",
            ", ".join(sorted(set(duplicates))),
        )
    return unique


class MCPToolkit:
    """Discovers a server's tools once and hands out invocable adapters.

    Usage:
        toolkit = MCPToolkit({"command": "npx", "args": ["-y", "some-mcp-server"]})
        await toolkit.initialize()
        for tool in toolkit.get_tools():
            print(tool.signature())

        # Or scoped
        async with MCPToolkit({"url": "http://localhost:8000/mcp"}) as toolkit:
            result = await toolkit.get_tools()[0].invoke({"q": "hi"})

    Tools whose input schema cannot be translated are left out of the
    catalog; the rest stay usable. Failures are kept in ``failures``.
    """

    def __init__(
        self,
        config: ServerConnectionConfig | dict[str, Any],
        *,
        session_policy: SessionPolicy | str = SessionPolicy.EPHEMERAL,
        restrict_args: bool = False,
        opener: SessionOpener = open_session,
    ) -> None:
        """Initialize toolkit with a server config.

        Args:
            config: Connection config, or a raw mapping to parse.
            session_policy: "ephemeral" (new session per call) or
                "persistent" (one reused, health-checked session).
            restrict_args: Screen stdio arguments with the safety denylist
                before any process is spawned.
            opener: Session factory, replaceable for testing.

        Raises:
            ConfigError: If the config or the policy is invalid.
        """
        self._config = parse_server_config(config)
        self._restrict_args = restrict_args
        self._discovery_sessions = EphemeralSessions(
            self._config, restrict_args=restrict_args, opener=opener
        )
        self._sessions = make_session_provider(
            session_policy, self._config, restrict_args=restrict_args, opener=opener
        )
        self._descriptors: list[OperationDescriptor] | None = None
        self._tools: list[OperationAdapter] = []
        self._failures: dict[str, Exception] = {}
        self._init_lock = asyncio.Lock()

    @property
    def config(self) -> ServerConnectionConfig:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._descriptors is not None

    @property
    def descriptors(self) -> list[OperationDescriptor]:
        """Tool descriptors as reported by the server.

        Raises:
            ToolkitNotInitializedError: Before initialize() completed.
        """
        if self._descriptors is None:
            raise ToolkitNotInitializedError()
        return list(self._descriptors)

    @property
    def failures(self) -> dict[str, Exception]:
        """Tools dropped from the catalog, by name."""
        return dict(self._failures)

    async def initialize(self) -> None:
        """Discover the catalog and build adapters. No-op once done.

        Raises:
            ConfigError, SafetyRejection, TransportConnectionError: If the
                discovery session cannot be opened.
            DiscoveryError: If the tool list cannot be fetched.
        """
        async with self._init_lock:
            if self._descriptors is not None:
                return

            async with self._discovery_sessions.session() as session:
                descriptors = await discover_operations(session, self._config.options)
                tools, failures = await self._build_adapters(descriptors)

            self._descriptors = descriptors
            self._tools = tools
            self._failures = failures
            logger.info(
                "Toolkit ready for %s: %d of %d tools usable",
                self._config.target,
                len(tools),
                len(descriptors),
            )

    async def _build_adapter(self, descriptor: OperationDescriptor) -> OperationAdapter:
        return OperationAdapter.from_descriptor(descriptor, self._sessions, self._config.options)

    async def _build_adapters(
        self,
        descriptors: list[OperationDescriptor],
    ) -> tuple[list[OperationAdapter], dict[str, Exception]]:
        descriptors = _first_by_name(descriptors)
        results = await asyncio.gather(
            *(self._build_adapter(d) for d in descriptors),
            return_exceptions=True,
        )

        tools: list[OperationAdapter] = []
        failures: dict[str, Exception] = {}
        for descriptor, result in zip(descriptors, results, strict=True):
            if isinstance(result, Exception):
                failures[descriptor.name] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                tools.append(result)

        if failures:
            logger.warning(
                "Skipped %d of %d tools that could not be adapted: %s",
                len(failures),
                len(descriptors),
                ", ".join(f"{name} ({err})" for name, err in failures.items()),
            )
        return tools, failures

    def get_tools(self) -> list[OperationAdapter]:
        """Return the usable adapters in catalog order.

        Raises:
            ToolkitNotInitializedError: Before initialize() completed.
        """
        if self._descriptors is None:
            raise ToolkitNotInitializedError()
        return list(self._tools)

    def select_tools(self, names: Iterable[str]) -> list[OperationAdapter]:
        """Return only the adapters whose names are listed, in catalog order."""
        wanted = set(names)
        return [tool for tool in self.get_tools() if tool.name in wanted]

    def list_actions(self) -> list[dict[str, str]]:
        """Describe the usable tools for a picker, sorted by name."""
        return [
            {
                "name": tool.name,
                "label": tool.name.upper(),
                "description": tool.description or tool.name,
            }
            for tool in sorted(self.get_tools(), key=lambda t: t.name)
        ]

    async def cleanup(self) -> None:
        """Release sessions held by the toolkit. The catalog is kept."""
        await self._sessions.close()

    async def __aenter__(self) -> MCPToolkit:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.cleanup()
