"""Command line access to a tool server through the bridge.

Commands:
    list - Show the tools a server exposes
    call - Invoke one tool and print its JSON result

Usage:
    mcp-bridge list server.yaml
    mcp-bridge list server.yaml --set api_key=abc123
    mcp-bridge call server.yaml echo --args '{"text": "hello"}'
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from mcp_bridge.config import load_server_config
from mcp_bridge.errors import BridgeError
from mcp_bridge.toolkit import MCPToolkit

logger = logging.getLogger(__name__)


def _parse_values(pairs: list[str] | None) -> dict[str, str]:
    """Parse ``key=value`` pairs given with --set."""
    values: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got: {pair}")
        values[key] = value
    return values


def _make_toolkit(args: argparse.Namespace) -> MCPToolkit:
    config = load_server_config(Path(args.config), _parse_values(args.set))
    return MCPToolkit(
        config,
        session_policy=args.session_policy,
        restrict_args=args.restrict_args,
    )


async def list_tools(args: argparse.Namespace) -> int:
    """Print the usable tools of a server.

    Returns:
        Number of tools listed.
    """
    async with _make_toolkit(args) as toolkit:
        tools = {tool.name: tool for tool in toolkit.get_tools()}
        for action in toolkit.list_actions():
            tool = tools[action["name"]]
            print(f"  {tool.signature()}")
            if tool.description:
                print(f"      {tool.description[:80]}")
        for name, error in toolkit.failures.items():
            print(f"  (skipped) {name}: {error}")
        print(f"\n{len(tools)} tools on {toolkit.config.target}")
        return len(tools)


async def call_tool(args: argparse.Namespace) -> str:
    """Invoke one tool and print its serialized result.

    Returns:
        The JSON text returned by the tool.
    """
    try:
        tool_args: Any = json.loads(args.args)
    except json.JSONDecodeError as e:
        raise ValueError(f"--args is not valid JSON: {e}") from e
    if not isinstance(tool_args, dict):
        raise ValueError("--args must be a JSON object")

    async with _make_toolkit(args) as toolkit:
        selected = toolkit.select_tools([args.tool])
        if not selected:
            available = ", ".join(t.name for t in toolkit.get_tools())
            raise ValueError(f"Tool '{args.tool}' not found. Available: {available}")
        result = await selected[0].invoke(tool_args)
        print(result)
        return result


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the bridge CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        description="Discover and call tools on an MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Local server spawned over stdio (server.yaml)
  #   command: npx
  #   args: ["-y", "@modelcontextprotocol/server-everything"]
  mcp-bridge list server.yaml

  # Remote server with a templated header (remote.yaml)
  #   url: https://tools.example.com/mcp
  #   headers: {Authorization: "Bearer {token}"}
  mcp-bridge list remote.yaml --set token=abc123

  # Call a tool
  mcp-bridge call server.yaml echo --args '{"message": "hi"}'
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("config", help="Server config file (YAML or JSON)")
    common.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Value for a {KEY} placeholder in the config (repeatable)",
    )
    common.add_argument(
        "--session-policy",
        choices=["ephemeral", "persistent"],
        default="ephemeral",
        help="Open a session per call, or reuse one (default: ephemeral)",
    )
    common.add_argument(
        "--restrict-args",
        action="store_true",
        help="Reject stdio arguments that look like local file access",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", parents=[common], help="List tools on a server")

    call_parser = subparsers.add_parser("call", parents=[common], help="Call a tool")
    call_parser.add_argument("tool", help="Tool name")
    call_parser.add_argument("--args", default="{}", help="Tool arguments as a JSON object")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the bridge CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "list":
            asyncio.run(list_tools(args))
        elif args.command == "call":
            asyncio.run(call_tool(args))
    except (BridgeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
