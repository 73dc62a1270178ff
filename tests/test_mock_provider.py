"""Tests for the mock provider and the provider registry."""

import asyncio

import pytest

from wamanager.exceptions import InvalidConfigError
from wamanager.provider import (
    MockSessionProvider,
    available_providers,
    create_provider,
    get_provider_factory,
    register_provider,
)
from wamanager.provider.events import (
    Authenticated,
    Disconnected,
    LoadingProgress,
    MessageReceived,
    PairingChallenge,
    Ready,
)


async def drain(provider: MockSessionProvider) -> list:
    """Collect events until the stream ends."""
    return [event async for event in provider.events()]


class TestMockSessionProvider:
    """Tests for MockSessionProvider."""

    @pytest.mark.asyncio
    async def test_connect_with_stored_credentials(self):
        provider = MockSessionProvider("device-1")
        await provider.connect()
        await provider.teardown()

        events = await drain(provider)
        assert [type(e) for e in events] == [LoadingProgress, Authenticated, Ready]
        assert events[-1].phone_number == "6280000000000"

    @pytest.mark.asyncio
    async def test_connect_with_pairing(self):
        provider = MockSessionProvider("device-1", {"pair": True, "auto_ready": False})
        await provider.connect()
        provider.simulate_ready()
        await provider.teardown()

        events = await drain(provider)
        assert isinstance(events[1], PairingChallenge)
        assert events[1].payload.startswith("mock-qr:device-1:")
        assert isinstance(events[-1], Ready)

    @pytest.mark.asyncio
    async def test_connect_error(self):
        provider = MockSessionProvider("device-1", {"connect_error": RuntimeError("no browser")})
        with pytest.raises(RuntimeError, match="no browser"):
            await provider.connect()

    @pytest.mark.asyncio
    async def test_send(self):
        provider = MockSessionProvider("device-1")
        sent = await provider.send("6281@c.us", "hello")
        assert sent.to_address == "6281@c.us"
        assert sent.from_address == "6280000000000@c.us"
        assert provider.sent == [sent]

    @pytest.mark.asyncio
    async def test_send_error(self):
        provider = MockSessionProvider("device-1", {"send_error": RuntimeError("offline")})
        with pytest.raises(RuntimeError):
            await provider.send("6281@c.us", "hello")

    @pytest.mark.asyncio
    async def test_simulated_message(self):
        provider = MockSessionProvider("device-1")
        message = provider.simulate_message("hi", from_address="12345@g.us", from_name="Team")
        await provider.teardown()

        events = await drain(provider)
        assert events == [MessageReceived(message=message)]
        assert message.is_group
        assert message.sender_name == "Team"

    @pytest.mark.asyncio
    async def test_teardown_is_idempotent(self):
        provider = MockSessionProvider("device-1")
        await provider.teardown()
        await provider.teardown()
        assert provider.release_calls == 1
        assert provider.is_torn_down

    @pytest.mark.asyncio
    async def test_events_after_teardown_dropped(self):
        provider = MockSessionProvider("device-1")
        await provider.teardown()
        provider.simulate_disconnect()
        assert await drain(provider) == []

    @pytest.mark.asyncio
    async def test_disconnect_on_teardown(self):
        provider = MockSessionProvider("device-1", {"disconnect_on_teardown": True})
        await provider.teardown()
        assert await drain(provider) == [Disconnected(reason="LOGOUT")]

    @pytest.mark.asyncio
    async def test_teardown_error_still_closes_stream(self):
        provider = MockSessionProvider("device-1", {"teardown_error": RuntimeError("stuck")})
        with pytest.raises(RuntimeError):
            await provider.teardown()
        assert await asyncio.wait_for(drain(provider), timeout=1.0) == []


class TestProviderFactory:
    """Tests for the engine registry."""

    def test_mock_registered(self):
        assert "mock" in available_providers()
        assert get_provider_factory("mock") is MockSessionProvider

    def test_unknown_engine(self):
        with pytest.raises(InvalidConfigError) as exc_info:
            get_provider_factory("selenium")
        assert exc_info.value.details["config_key"] == "provider_engine"

    def test_create_provider(self):
        provider = create_provider("mock", "device-1", {"account_id": "6281@c.us"})
        assert isinstance(provider, MockSessionProvider)
        assert provider.device_id == "device-1"
        assert provider.account_id == "6281@c.us"

    def test_register_provider(self):
        created = []

        def factory(device_id, options):
            created.append(device_id)
            return MockSessionProvider(device_id, options)

        register_provider("custom-test", factory)
        create_provider("custom-test", "device-9")
        assert created == ["device-9"]
