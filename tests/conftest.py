"""Pytest configuration and shared fixtures."""

import asyncio
import json
import os
from typing import Any, AsyncGenerator, Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing settings
os.environ.update({
    "ENVIRONMENT": "development",
    "AUTH_ENABLED": "false",
    "DATABASE_PATH": ":memory:",
    "PROVIDER_ENGINE": "mock",
    "INITIALIZE_ON_STARTUP": "false",
    "LOG_LEVEL": "WARNING",
})

from wamanager.orchestrator.manager import OrchestratorConfig, SessionOrchestrator  # noqa: E402
from wamanager.orchestrator.state_machine import LifecycleState  # noqa: E402
from wamanager.provider.mock_provider import MockSessionProvider  # noqa: E402
from wamanager.store.database import SessionStore  # noqa: E402
from wamanager.webhook.dispatcher import WebhookDispatcher  # noqa: E402


class FakeWebhook:
    """Records webhook requests and answers with a configurable response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code: int = 200
        self.json_body: Any = {"ok": True}
        self.text_body: str | None = None
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.text_body is not None:
            return httpx.Response(self.status_code, text=self.text_body)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def payloads(self) -> list[Any]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def store() -> Generator[SessionStore, None, None]:
    """Provide a fresh in-memory session store."""
    s = SessionStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def webhook() -> FakeWebhook:
    return FakeWebhook()


@pytest.fixture
async def http_client(webhook: FakeWebhook) -> AsyncGenerator[httpx.AsyncClient, None]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(webhook.handler))
    yield client
    await client.aclose()


@pytest.fixture
def dispatcher(store: SessionStore, http_client: httpx.AsyncClient) -> WebhookDispatcher:
    return WebhookDispatcher(store, client=http_client)


@pytest.fixture
def fast_config() -> OrchestratorConfig:
    """Orchestrator timings shrunk for tests."""
    return OrchestratorConfig(
        max_init_retries=3,
        init_timeout_s=1.0,
        teardown_timeout_s=1.0,
        reconnect_delay_s=0.01,
        restart_settle_s=0.0,
        init_stagger_s=0.0,
    )


@pytest.fixture
def mock_options() -> dict[str, Any]:
    """Options applied to every mock provider the factory builds."""
    return {}


@pytest.fixture
def device_options() -> dict[str, dict[str, Any]]:
    """Per-device mock provider options, keyed by device id."""
    return {}


@pytest.fixture
def providers() -> list[MockSessionProvider]:
    """Every provider created by the factory, in creation order."""
    return []


@pytest.fixture
def provider_factory(
    mock_options: dict[str, Any],
    device_options: dict[str, dict[str, Any]],
    providers: list[MockSessionProvider],
) -> Callable[[str, dict[str, Any]], MockSessionProvider]:
    def factory(device_id: str, options: dict[str, Any]) -> MockSessionProvider:
        provider = MockSessionProvider(
            device_id,
            {**options, **mock_options, **device_options.get(device_id, {})},
        )
        providers.append(provider)
        return provider

    return factory


@pytest.fixture
async def orchestrator(
    store: SessionStore,
    dispatcher: WebhookDispatcher,
    provider_factory: Callable[[str, dict[str, Any]], MockSessionProvider],
    fast_config: OrchestratorConfig,
) -> AsyncGenerator[SessionOrchestrator, None]:
    orch = SessionOrchestrator(
        store=store,
        provider_factory=provider_factory,
        dispatcher=dispatcher,
        config=fast_config,
    )
    yield orch
    await orch.disconnect_all()


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    """Poll a predicate until it holds or the timeout expires."""

    async def _wait(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        while not predicate():
            if loop.time() >= deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)

    return _wait


@pytest.fixture
def wait_for_state(
    orchestrator: SessionOrchestrator,
    wait_until: Callable[..., Any],
) -> Callable[..., Any]:
    """Wait until a device reaches a lifecycle state."""

    async def _wait(device_id: str, state: LifecycleState, timeout_s: float = 2.0) -> None:
        def reached() -> bool:
            session = orchestrator.get_session(device_id)
            return session is not None and session.state is state

        await wait_until(reached, timeout_s)

    return _wait


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with fast orchestrator timings."""
    from wamanager.api import dependencies
    from wamanager.main import app

    with TestClient(app) as c:
        config = dependencies.get_orchestrator().config
        config.restart_settle_s = 0.0
        config.reconnect_delay_s = 0.01
        yield c
