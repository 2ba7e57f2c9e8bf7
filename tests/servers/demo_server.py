"""Small MCP server used by the integration tests.

Run directly:
    python tests/servers/demo_server.py            # stdio
    python tests/servers/demo_server.py sse 8765   # event stream only, at /sse
"""

import sys

from fastmcp import FastMCP

mcp = FastMCP("bridge-demo")


@mcp.tool
def echo(text: str) -> str:
    """Echo text back."""
    return text


@mcp.tool
def add(a: float, b: float) -> float:
    """Add two numbers."""
    return a + b


@mcp.tool
def status() -> str:
    """Report server status. Takes no arguments."""
    return "ok"


@mcp.tool
def fail(reason: str) -> str:
    """Always raise, so clients see an error result."""
    raise ValueError(reason)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        mcp.run(transport=sys.argv[1], host="127.0.0.1", port=int(sys.argv[2]))
    else:
        mcp.run()
