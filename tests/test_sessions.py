"""Tests for session acquisition policies."""

import asyncio

import pytest

from mcp_bridge import ConfigError, EphemeralSessions, PersistentSession, parse_server_config
from mcp_bridge.sessions import SessionPolicy, SessionProvider, make_session_provider
from tests.conftest import FakeServer


@pytest.fixture
def config(stdio_config):
    return parse_server_config(stdio_config)


class TestEphemeralSessions:
    @pytest.mark.asyncio
    async def test_new_session_per_use(self, config, fake_server: FakeServer) -> None:
        provider = EphemeralSessions(config, opener=fake_server)

        async with provider.session() as first:
            assert not first.closed
        async with provider.session() as second:
            pass

        assert first is not second
        assert first.closed
        assert second.closed

    @pytest.mark.asyncio
    async def test_closed_on_error(self, config, fake_server: FakeServer) -> None:
        provider = EphemeralSessions(config, opener=fake_server)

        with pytest.raises(ValueError):
            async with provider.session():
                raise ValueError("boom")

        assert fake_server.sessions[0].closed

    @pytest.mark.asyncio
    async def test_restrict_args_passed_to_opener(self, config, fake_server: FakeServer) -> None:
        provider = EphemeralSessions(config, restrict_args=True, opener=fake_server)

        async with provider.session():
            pass

        assert fake_server.open_calls == [{"config": config, "restrict_args": True}]

    @pytest.mark.asyncio
    async def test_concurrent_uses_do_not_share(self, config, fake_server: FakeServer) -> None:
        provider = EphemeralSessions(config, opener=fake_server)

        async def use():
            async with provider.session() as session:
                await asyncio.sleep(0)
                return session

        first, second = await asyncio.gather(use(), use())

        assert first is not second
        assert fake_server.open_count == 2


class TestPersistentSession:
    @pytest.mark.asyncio
    async def test_session_reused(self, config, fake_server: FakeServer) -> None:
        provider = PersistentSession(config, opener=fake_server)

        async with provider.session() as first:
            pass
        async with provider.session() as second:
            pass

        assert first is second
        assert not first.closed
        assert fake_server.open_count == 1
        # Health-checked before reuse
        fake_server.clients[0].send_ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconnects_after_failed_ping(self, config, fake_server: FakeServer) -> None:
        provider = PersistentSession(config, opener=fake_server)

        async with provider.session() as first:
            pass
        fake_server.clients[0].send_ping.side_effect = ConnectionResetError("pipe closed")

        async with provider.session() as second:
            pass

        assert second is not first
        assert first.closed
        assert not second.closed
        assert fake_server.open_count == 2

    @pytest.mark.asyncio
    async def test_reopens_closed_session(self, config, fake_server: FakeServer) -> None:
        provider = PersistentSession(config, opener=fake_server)

        async with provider.session() as first:
            await first.close()
        async with provider.session() as second:
            pass

        assert second is not first

    @pytest.mark.asyncio
    async def test_uses_are_serialized(self, config, fake_server: FakeServer) -> None:
        provider = PersistentSession(config, opener=fake_server)
        active = 0
        peak = 0

        async def use():
            nonlocal active, peak
            async with provider.session():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0)
                active -= 1

        await asyncio.gather(use(), use(), use())

        assert peak == 1
        assert fake_server.open_count == 1

    @pytest.mark.asyncio
    async def test_close(self, config, fake_server: FakeServer) -> None:
        provider = PersistentSession(config, opener=fake_server)
        async with provider.session() as session:
            pass

        await provider.close()
        await provider.close()

        assert session.closed

    @pytest.mark.asyncio
    async def test_close_without_session(self, config, fake_server: FakeServer) -> None:
        await PersistentSession(config, opener=fake_server).close()
        assert fake_server.open_count == 0


class TestMakeSessionProvider:
    def test_default_policy(self, config) -> None:
        provider = make_session_provider(SessionPolicy.EPHEMERAL, config)

        assert isinstance(provider, EphemeralSessions)
        assert isinstance(provider, SessionProvider)

    def test_policy_by_name(self, config) -> None:
        assert isinstance(make_session_provider("persistent", config), PersistentSession)

    def test_unknown_policy(self, config) -> None:
        with pytest.raises(ConfigError, match="pooled"):
            make_session_provider("pooled", config)
