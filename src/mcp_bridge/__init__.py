"""mcp-bridge: expose the tools of any MCP server to a host application."""

from mcp_bridge.adapter import OperationAdapter, serialize_content
from mcp_bridge.config import (
    CallOptions,
    HttpServerConfig,
    ServerConnectionConfig,
    StdioServerConfig,
    TransportKind,
    apply_config_values,
    load_server_config,
    parse_server_config,
)
from mcp_bridge.discovery import OperationDescriptor, discover_operations
from mcp_bridge.errors import (
    ArgumentValidationError,
    BridgeError,
    ConfigError,
    DiscoveryError,
    InvocationError,
    SafetyRejection,
    SessionClosedError,
    ToolkitNotInitializedError,
    TransportConnectionError,
    TranslationError,
)
from mcp_bridge.safety import validate_process_args
from mcp_bridge.schema import translate_input_schema, translate_schema
from mcp_bridge.sessions import EphemeralSessions, PersistentSession, SessionPolicy

# Core entry point
from mcp_bridge.toolkit import MCPToolkit
from mcp_bridge.transport import Session, connect, open_session

__version__ = "0.1.0"

__all__ = [
    # Core
    "MCPToolkit",
    "OperationAdapter",
    "OperationDescriptor",
    # Config
    "CallOptions",
    "HttpServerConfig",
    "ServerConnectionConfig",
    "StdioServerConfig",
    "TransportKind",
    "apply_config_values",
    "load_server_config",
    "parse_server_config",
    # Sessions
    "Session",
    "SessionPolicy",
    "EphemeralSessions",
    "PersistentSession",
    "connect",
    "open_session",
    # Building blocks
    "discover_operations",
    "serialize_content",
    "translate_input_schema",
    "translate_schema",
    "validate_process_args",
    # Errors
    "BridgeError",
    "ConfigError",
    "TransportConnectionError",
    "SessionClosedError",
    "DiscoveryError",
    "TranslationError",
    "ArgumentValidationError",
    "InvocationError",
    "SafetyRejection",
    "ToolkitNotInitializedError",
]
