"""Denylist checks for arguments passed to a spawned tool server.

Server configs can come from untrusted input. Before such a config spawns a
local process its arguments are screened for patterns that reach into the
local filesystem or run unexpected binaries. This is a best-effort
denylist, not a sandbox.
"""

from __future__ import annotations

__all__ = [
    "MAX_ARGUMENT_LENGTH",
    "validate_process_args",
]

import re
from collections.abc import Iterable

from mcp_bridge.errors import SafetyRejection

MAX_ARGUMENT_LENGTH = 1000

_FILE_FLAGS = r"(?:file|input|output|config|load|save|import|export|read|write)"

# (pattern, reason) pairs, checked in order
_DENYLIST: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^/[^/]"), "absolute path"),
    (re.compile(r"^[a-zA-Z]:[\\/]"), "absolute Windows path"),
    (re.compile(r"\.\./"), "parent directory traversal"),
    (re.compile(r"\.\.\\"), "parent directory traversal"),
    (re.compile(r"^\.\."), "parent directory traversal"),
    (re.compile(r"^\./"), "relative path"),
    (re.compile(r"^~[\\/]"), "home directory path"),
    (re.compile(r"^file://", re.IGNORECASE), "file URL"),
    (
        re.compile(r"\.(?:exe|bat|cmd|sh|ps1|vbs|scr|com|pif|dll|sys)$", re.IGNORECASE),
        "executable file",
    ),
    (re.compile(rf"^--?{_FILE_FLAGS}(?:=.*)?$", re.IGNORECASE | re.DOTALL), "file I/O flag"),
)


def _check_argument(arg: object) -> None:
    if not isinstance(arg, str):
        raise SafetyRejection(repr(arg), "not a string")

    # Control characters first so the message never embeds a raw null byte
    if "\x00" in arg:
        raise SafetyRejection(arg.replace("\x00", "\\x00"), "contains null byte")

    if len(arg) > MAX_ARGUMENT_LENGTH:
        raise SafetyRejection(arg, f"too long ({len(arg)} characters)")

    for pattern, reason in _DENYLIST:
        if pattern.search(arg):
            raise SafetyRejection(arg, reason)


def validate_process_args(args: Iterable[object]) -> None:
    """Reject process arguments that look like local file or binary access.

    Args:
        args: Arguments that would be passed to the spawned server.

    Raises:
        SafetyRejection: On the first argument matching the denylist.
    """
    for arg in args:
        _check_argument(arg)
