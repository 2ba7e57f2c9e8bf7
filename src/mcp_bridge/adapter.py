"""Invocable adapters for discovered tools."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mcp_bridge.config import CallOptions
from mcp_bridge.discovery import OperationDescriptor
from mcp_bridge.errors import BridgeError, InvocationError
from mcp_bridge.schema import ObjectValidator, translate_input_schema
from mcp_bridge.sessions import SessionProvider

logger = logging.getLogger(__name__)


def _dump_content(item: Any) -> Any:
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json", by_alias=True, exclude_none=True)
    return item


def serialize_content(result: Any) -> str:
    """Encode the content payload of a ``tools/call`` result as JSON text."""
    content = getattr(result, "content", None)
    if content is None and isinstance(result, Mapping):
        content = result.get("content")
    return json.dumps(
        [_dump_content(item) for item in content or []],
        ensure_ascii=False,
        separators=(",", ":"),
    )


@dataclass(frozen=True, eq=False)
class OperationAdapter:
    """One remote tool, bound to its validator and connection context.

    Usage:
        result = await adapter.invoke({"query": "weather in Oslo"})
        result = await adapter(query="weather in Oslo")

    Each invocation acquires its own session from ``sessions`` and releases
    it before returning or raising, so adapters can be called repeatedly and
    concurrently.
    """

    name: str
    description: str
    validator: ObjectValidator
    sessions: SessionProvider = field(repr=False)
    options: CallOptions = field(default_factory=CallOptions)

    @classmethod
    def from_descriptor(
        cls,
        descriptor: OperationDescriptor,
        sessions: SessionProvider,
        options: CallOptions | None = None,
    ) -> OperationAdapter:
        """Translate a descriptor's schema and bind it.

        Raises:
            TranslationError: If the input schema cannot be translated.
        """
        return cls(
            name=descriptor.name,
            description=descriptor.description,
            validator=translate_input_schema(descriptor.input_schema, descriptor.name),
            sessions=sessions,
            options=options or CallOptions(),
        )

    @property
    def args_schema(self) -> dict[str, Any]:
        """JSON Schema of the accepted arguments."""
        return self.validator.to_json_schema()

    def signature(self) -> str:
        """Python-style signature, required parameters first.

        Example: "search(query: str, limit: int | None = None)"
        """
        fields = self.validator.fields
        required = [n for n in fields if self.validator.is_required(n)]
        optional = [n for n in fields if not self.validator.is_required(n)]

        params = [f"{n}: {fields[n].type_hint}" for n in required]
        params += [f"{n}: {fields[n].type_hint} | None = None" for n in optional]
        return f"{self.name}({', '.join(params)})"

    async def invoke(self, args: Mapping[str, Any] | None = None) -> str:
        """Validate ``args``, call the tool and return its content as JSON text.

        Raises:
            ArgumentValidationError: If args do not match the input schema.
            TransportConnectionError: If no session could be opened.
            InvocationError: If the remote call fails.
        """
        arguments = self.validator.validate(dict(args or {}))

        async with self.sessions.session() as session:
            try:
                result = await session.call_tool(self.name, arguments, self.options)
            except BridgeError:
                raise
            except Exception as e:
                raise InvocationError(self.name, tool_args=arguments, cause=e) from e

        if getattr(result, "isError", False):
            logger.warning("Tool '%s' reported an error result", self.name)
        return serialize_content(result)

    async def __call__(self, **kwargs: Any) -> str:
        return await self.invoke(kwargs)

    def __repr__(self) -> str:
        """Format as: signature: description"""
        return f"{self.signature()}: {self.description}"
