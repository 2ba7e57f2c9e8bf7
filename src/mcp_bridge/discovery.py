"""Tool catalog discovery."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mcp_bridge.config import CallOptions
from mcp_bridge.errors import DiscoveryError
from mcp_bridge.transport import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationDescriptor:
    """Metadata for one tool exposed by a server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_tool(cls, tool: Any) -> OperationDescriptor:
        """Build a descriptor from an MCP Tool or a plain mapping.

        Raises:
            DiscoveryError: If the entry has no usable name.
        """
        if isinstance(tool, Mapping):
            name = tool.get("name")
            description = tool.get("description")
            input_schema = tool.get("inputSchema")
        else:
            name = getattr(tool, "name", None)
            description = getattr(tool, "description", None)
            input_schema = getattr(tool, "inputSchema", None)

        if not isinstance(name, str) or not name:
            raise DiscoveryError(f"malformed tool entry without a name: {tool!r}")

        return cls(
            name=name,
            description=description or "",
            input_schema=dict(input_schema) if isinstance(input_schema, Mapping) else {},
        )


async def discover_operations(
    session: Session,
    options: CallOptions | None = None,
) -> list[OperationDescriptor]:
    """List the tools a server offers, in server order.

    Sends a single ``tools/list`` request; schemas are returned as reported
    and are not translated here.

    Raises:
        DiscoveryError: If the request fails or the response is malformed.
    """
    try:
        response = await session.list_tools(options)
    except Exception as e:
        raise DiscoveryError(f"{type(e).__name__}: {e}", cause=e) from e

    tools = getattr(response, "tools", None)
    if tools is None and isinstance(response, Mapping):
        tools = response.get("tools")
    if not isinstance(tools, (list, tuple)):
        raise DiscoveryError("malformed response without a tool list")

    descriptors = [OperationDescriptor.from_tool(tool) for tool in tools]
    logger.debug("Discovered %d tools: %s", len(descriptors), [d.name for d in descriptors])
    return descriptors
