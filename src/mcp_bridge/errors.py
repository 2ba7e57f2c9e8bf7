"""Error types for mcp-bridge.

All errors inherit from BridgeError for easy catching at host level.
"""

from typing import Any


class BridgeError(Exception):
    """Base class for all mcp-bridge errors."""

    pass


class ConfigError(BridgeError):
    """Missing or invalid server connection configuration."""

    pass


class TransportConnectionError(BridgeError):
    """Raised when no session could be established with the tool server."""

    def __init__(self, transport: str, target: str, cause: Exception) -> None:
        self.transport = transport
        self.target = target
        self.cause = cause
        super().__init__(f"Could not connect to '{target}' over {transport}: {cause}")


class SessionClosedError(BridgeError):
    """Raised when a closed session is used."""

    def __init__(self, transport: str) -> None:
        self.transport = transport
        super().__init__(f"Session over {transport} is closed and cannot be reused")


class DiscoveryError(BridgeError):
    """Raised when the server's tool catalog cannot be listed."""

    def __init__(self, reason: str, cause: Exception | None = None) -> None:
        self.reason = reason
        self.cause = cause
        super().__init__(f"Tool discovery failed: {reason}")


class TranslationError(BridgeError):
    """Raised when a tool input schema cannot be turned into a validator."""

    def __init__(self, reason: str, tool_name: str | None = None) -> None:
        self.reason = reason
        self.tool_name = tool_name
        msg = f"Cannot translate input schema: {reason}"
        if tool_name:
            msg = f"Cannot translate input schema of '{tool_name}': {reason}"
        super().__init__(msg)


class ArgumentValidationError(BridgeError):
    """Raised when caller arguments do not match a tool's input shape."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid argument at {path}: {reason}")


class InvocationError(BridgeError):
    """Raised when a remote tool call fails."""

    def __init__(
        self,
        tool_name: str,
        tool_args: dict[str, Any],
        cause: Exception,
    ) -> None:
        self.tool_name = tool_name
        self.tool_args = (
            tool_args  # Named tool_args to avoid collision with Exception.args
        )
        self.cause = cause
        super().__init__(f"Tool '{tool_name}' failed: {cause}")


class SafetyRejection(BridgeError):
    """Raised when a process argument looks like local file or binary access."""

    MAX_SHOWN = 100

    def __init__(self, argument: str, reason: str) -> None:
        self.argument = argument
        self.reason = reason
        shown = argument
        if len(shown) > self.MAX_SHOWN:
            shown = shown[: self.MAX_SHOWN] + "..."
        super().__init__(f"Argument rejected ({reason}): {shown!r}")


class ToolkitNotInitializedError(BridgeError):
    """Raised when tools are requested before initialize() completed."""

    def __init__(self) -> None:
        super().__init__("Toolkit must be initialized first; call initialize()")
