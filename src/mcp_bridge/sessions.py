"""Session acquisition policies for tool invocations.

Two policies are available:

  - ephemeral (default): every unit of work opens a fresh session and
    closes it afterwards. Concurrent calls never share a connection, and a
    dead server process or stale HTTP session only affects one call.
  - persistent: one session is opened lazily and reused. Calls are
    serialized on it, and it is pinged before each reuse and reopened when
    the ping fails. Cheaper for servers with expensive startup.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from enum import Enum
from typing import Protocol, runtime_checkable

from mcp_bridge.config import ServerConnectionConfig
from mcp_bridge.errors import ConfigError
from mcp_bridge.transport import Session, open_session

logger = logging.getLogger(__name__)

SessionOpener = Callable[..., Awaitable[Session]]


class SessionPolicy(str, Enum):
    EPHEMERAL = "ephemeral"
    PERSISTENT = "persistent"


@runtime_checkable
class SessionProvider(Protocol):
    """Hands out sessions to adapters."""

    def session(self) -> AbstractAsyncContextManager[Session]:
        """Acquire a session for one unit of work."""
        ...

    async def close(self) -> None:
        """Release any session held between units of work."""
        ...


class EphemeralSessions:
    """Opens a new session per unit of work and closes it on exit."""

    def __init__(
        self,
        config: ServerConnectionConfig,
        *,
        restrict_args: bool = False,
        opener: SessionOpener = open_session,
    ) -> None:
        self._config = config
        self._restrict_args = restrict_args
        self._opener = opener

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        session = await self._opener(self._config, restrict_args=self._restrict_args)
        try:
            yield session
        finally:
            await session.close()

    async def close(self) -> None:
        pass


class PersistentSession:
    """Reuses one session across units of work.

    The session is opened on first use. Units of work are serialized with a
    lock so two calls never interleave on the same connection.
    """

    def __init__(
        self,
        config: ServerConnectionConfig,
        *,
        restrict_args: bool = False,
        opener: SessionOpener = open_session,
    ) -> None:
        self._config = config
        self._restrict_args = restrict_args
        self._opener = opener
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    async def _healthy_session(self) -> Session:
        if self._session is not None and not self._session.closed:
            try:
                await self._session.ping()
                return self._session
            except Exception as e:
                logger.info("Reusable session failed health check, reconnecting: %s", e)
                await self._session.close()
        self._session = await self._opener(self._config, restrict_args=self._restrict_args)
        return self._session

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        async with self._lock:
            yield await self._healthy_session()

    async def close(self) -> None:
        async with self._lock:
            if self._session is not None:
                await self._session.close()
                self._session = None


def make_session_provider(
    policy: SessionPolicy | str,
    config: ServerConnectionConfig,
    *,
    restrict_args: bool = False,
    opener: SessionOpener = open_session,
) -> SessionProvider:
    """Create the provider for a policy name.

    Raises:
        ConfigError: If the policy is unknown.
    """
    try:
        policy = SessionPolicy(policy)
    except ValueError as e:
        choices = ", ".join(p.value for p in SessionPolicy)
        raise ConfigError(f"Unknown session policy {policy!r}, expected one of: {choices}") from e
    if policy is SessionPolicy.PERSISTENT:
        return PersistentSession(config, restrict_args=restrict_args, opener=opener)
    return EphemeralSessions(config, restrict_args=restrict_args, opener=opener)
