"""Server connection configuration.

A tool server is reached either by spawning a local process (stdio) or by
connecting to a network endpoint (streamable HTTP, falling back to SSE).
The transport is picked once, from the presence of the ``command`` key:

    # stdio
    command: npx
    args: ["-y", "@modelcontextprotocol/server-everything"]
    env: {API_KEY: "{api_key}"}

    # network
    url: https://tools.example.com/mcp
    headers: {Authorization: "Bearer {token}"}
    options: {timeout: 20}
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from mcp_bridge.errors import ConfigError

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_.-]+)\}")


class TransportKind(str, Enum):
    """Transport family used to reach a tool server."""

    STDIO = "stdio"
    HTTP = "http"


@dataclass(frozen=True)
class CallOptions:
    """Per-request options forwarded with every list and call request.

    timeout: read timeout in seconds for a single request. None means the
    request waits until the server answers or the transport fails.
    """

    timeout: float | None = None

    @classmethod
    def from_dict(cls, data: Any) -> CallOptions:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"'options' must be a mapping, got {type(data).__name__}")
        timeout = data.get("timeout")
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise ConfigError("'options.timeout' must be a number of seconds")
            if timeout <= 0:
                raise ConfigError("'options.timeout' must be positive")
            timeout = float(timeout)
        return cls(timeout=timeout)


@dataclass(frozen=True)
class StdioServerConfig:
    """A tool server spawned as a local process speaking over stdin/stdout."""

    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    options: CallOptions = field(default_factory=CallOptions)

    @property
    def transport(self) -> TransportKind:
        return TransportKind.STDIO

    @property
    def target(self) -> str:
        return " ".join((self.command, *self.args))

    def effective_env(self) -> dict[str, str]:
        """Configured environment with the host PATH added when missing.

        The spawned server must be able to resolve binaries (npx, uvx, ...)
        even when the configured env does not carry a search path.
        """
        env = dict(self.env)
        host_path = os.environ.get("PATH")
        if "PATH" not in env and host_path is not None:
            env["PATH"] = host_path
        return env

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StdioServerConfig:
        command = data.get("command")
        if not isinstance(command, str) or not command.strip():
            raise ConfigError("'command' must be a non-empty string")

        args = data.get("args", [])
        if args is None:
            args = []
        if not isinstance(args, (list, tuple)) or not all(isinstance(a, str) for a in args):
            raise ConfigError("'args' must be a list of strings")

        cwd = data.get("cwd")
        if cwd is not None and not isinstance(cwd, str):
            raise ConfigError("'cwd' must be a string")

        return cls(
            command=command,
            args=tuple(args),
            env=_string_map(data.get("env"), "env"),
            cwd=cwd,
            options=CallOptions.from_dict(data.get("options")),
        )


@dataclass(frozen=True)
class HttpServerConfig:
    """A tool server reachable at a network endpoint."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0  # HTTP connect/write timeout
    sse_read_timeout: float = 300.0  # How long to wait for a new event
    options: CallOptions = field(default_factory=CallOptions)

    @property
    def transport(self) -> TransportKind:
        return TransportKind.HTTP

    @property
    def target(self) -> str:
        return self.url

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HttpServerConfig:
        url = data.get("url")
        if url is None:
            raise ConfigError("'url' is required when no 'command' is configured")
        if not isinstance(url, str) or not url.strip():
            raise ConfigError("'url' must be a non-empty string")
        if not url.startswith(("http://", "https://")):
            raise ConfigError(f"'url' must be an http(s) URL, got {url!r}")

        kwargs: dict[str, Any] = {}
        for key in ("timeout", "sse_read_timeout"):
            if key in data:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise ConfigError(f"'{key}' must be a positive number of seconds")
                kwargs[key] = float(value)

        return cls(
            url=url,
            headers=_string_map(data.get("headers"), "headers"),
            options=CallOptions.from_dict(data.get("options")),
            **kwargs,
        )


ServerConnectionConfig = StdioServerConfig | HttpServerConfig


def _string_map(value: Any, key: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping of strings")
    result = {}
    for k, v in value.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise ConfigError(f"'{key}' must be a mapping of strings, got {k!r}: {v!r}")
        result[k] = v
    return result


def parse_server_config(raw: Any) -> ServerConnectionConfig:
    """Build a connection config from a raw mapping.

    Raises:
        ConfigError: If the mapping is malformed or misses required fields.
    """
    if isinstance(raw, (StdioServerConfig, HttpServerConfig)):
        return raw
    if not isinstance(raw, dict):
        raise ConfigError(f"Server config must be a mapping, got {type(raw).__name__}")

    if raw.get("command") is not None:
        return StdioServerConfig.from_dict(raw)
    return HttpServerConfig.from_dict(raw)


def apply_config_values(raw: Any, values: dict[str, Any]) -> Any:
    """Replace ``{key}`` placeholders in every string of a raw config.

    Works recursively through lists and mappings and returns a new
    structure. Placeholders without a value are left as they are.
    """
    if not values:
        return raw

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values:
            return str(values[key])
        return match.group(0)

    if isinstance(raw, str):
        return _PLACEHOLDER.sub(_replace, raw)
    if isinstance(raw, dict):
        return {k: apply_config_values(v, values) for k, v in raw.items()}
    if isinstance(raw, (list, tuple)):
        return [apply_config_values(v, values) for v in raw]
    return raw


def load_server_config(
    path: str | Path,
    values: dict[str, Any] | None = None,
) -> ServerConnectionConfig:
    """Load a server config from a YAML (or JSON) file.

    Args:
        path: File to read.
        values: Optional placeholder values applied before parsing.

    Raises:
        ConfigError: If the file cannot be read or holds an invalid config.
    """
    config_path = Path(path)
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read server config {config_path}: {e}") from e

    logger.debug("Loaded server config from %s", config_path)
    return parse_server_config(apply_config_values(raw, values or {}))
