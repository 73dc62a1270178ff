"""Session Provider Interface - Pluggable messaging account connection.

Defines the interface a messaging session implementation must satisfy.
One provider instance serves exactly one device.

Providers must:
- Publish lifecycle and message events on a single ordered stream
- Connect asynchronously (may block for a pairing handshake)
- Tear down idempotently (a second teardown is a no-op)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Protocol

from wamanager.models import Conversation, SentMessage
from wamanager.observability.logging import get_logger
from wamanager.provider.events import ProviderEvent

logger = get_logger(__name__)


class SessionProvider(Protocol):
    """Protocol for pluggable session providers.

    Usage:
        provider = create_provider("mock", "device-1", options)
        events = provider.events()

        await provider.connect()
        async for event in events:
            ...

        sent = await provider.send("6281234@c.us", "hello")
        await provider.teardown()
    """

    @property
    def device_id(self) -> str:
        """Device this provider is bound to."""
        ...

    def events(self) -> AsyncIterator[ProviderEvent]:
        """Ordered stream of provider events; ends after teardown."""
        ...

    async def connect(self) -> None:
        """Start the session; completes once the provider is initialized."""
        ...

    async def teardown(self) -> None:
        """Release all resources. Must be idempotent."""
        ...

    async def send(self, to_address: str, body: str) -> SentMessage:
        """Send a text message to a conversation."""
        ...

    async def list_conversations(self) -> list[Conversation]:
        """List the account's conversations."""
        ...


class BaseSessionProvider(ABC):
    """Base class for provider implementations.

    Provides the queue-backed event stream and idempotent teardown.
    Concrete implementations override connect, send, list_conversations
    and _release.
    """

    def __init__(self, device_id: str, options: dict[str, Any] | None = None) -> None:
        self._device_id = device_id
        self._options = dict(options or {})
        self._queue: asyncio.Queue[ProviderEvent | None] = asyncio.Queue()
        self._stream_closed: bool = False
        self._torn_down: bool = False

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def options(self) -> dict[str, Any]:
        return self._options

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    def emit(self, event: ProviderEvent) -> None:
        """Publish an event. Dropped once the stream is closed."""
        if self._stream_closed:
            logger.debug(
                "event_dropped",
                device_id=self._device_id,
                event=type(event).__name__,
            )
            return
        self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[ProviderEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    def _close_stream(self) -> None:
        if not self._stream_closed:
            self._stream_closed = True
            self._queue.put_nowait(None)

    async def teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        try:
            await self._release()
        finally:
            self._close_stream()

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, to_address: str, body: str) -> SentMessage:
        ...

    @abstractmethod
    async def list_conversations(self) -> list[Conversation]:
        ...

    @abstractmethod
    async def _release(self) -> None:
        """Free provider resources (browser, sockets, ...)."""
        ...
