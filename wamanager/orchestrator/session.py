"""Device Session - One device bound to a session provider.

Coordinates, for a single device:
- Lifecycle state machine
- Provider binding (at most one live provider)
- Event dispatch loop (provider events handled in delivery order)
- Bounded initialization and teardown
"""

import asyncio
from typing import Awaitable, Callable

from wamanager.exceptions import (
    InitializationCancelledError,
    InitializationTimeoutError,
    ProviderTeardownError,
)
from wamanager.observability.logging import DeviceLogger, LogSink
from wamanager.observability.metrics import record_error
from wamanager.orchestrator.state_machine import (
    LifecycleState,
    LifecycleStateMachine,
    StateTransition,
)
from wamanager.provider.base import SessionProvider
from wamanager.provider.events import ProviderEvent
from wamanager.utils.async_timeout import AsyncTimeoutError, with_timeout

EventHandler = Callable[["DeviceSession", ProviderEvent], Awaitable[None]]


class DeviceSession:
    """In-memory record of one orchestrated device.

    The record outlives individual provider instances: the retry counter
    and last error survive failed attempts and restarts.

    Usage:
        session = DeviceSession("device-1", "Sales phone", sink=store)
        session.attach(provider)
        session.start_dispatch(handle_event)

        await session.machine.handle_initialize()
        await session.initialize(timeout_s=60.0)
        ...
        await session.close(teardown_timeout_s=15.0)
    """

    def __init__(
        self,
        device_id: str,
        display_name: str,
        sink: LogSink | None = None,
    ) -> None:
        self._device_id = device_id
        self.display_name = display_name

        self._machine = LifecycleStateMachine(device_id)
        self._machine.on_state_change(self._on_transition)
        self._logger = DeviceLogger(device_id, sink)

        self.phone_number: str | None = None
        self.qr_payload: str | None = None
        self.init_attempts: int = 0
        self.last_error: str | None = None

        self._provider: SessionProvider | None = None
        self._connect_task: asyncio.Task | None = None
        self._dispatch_task: asyncio.Task | None = None

        # Set while an explicit teardown is in progress
        self.closing: bool = False

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def machine(self) -> LifecycleStateMachine:
        return self._machine

    @property
    def state(self) -> LifecycleState:
        return self._machine.state

    @property
    def logger(self) -> DeviceLogger:
        return self._logger

    @property
    def provider(self) -> SessionProvider | None:
        return self._provider

    @property
    def is_active(self) -> bool:
        """Whether a provider is currently bound."""
        return self._provider is not None

    def _on_transition(self, transition: StateTransition) -> None:
        new_state = transition.new_state
        if new_state is LifecycleState.QR_READY:
            self.qr_payload = transition.metadata.get("qr_payload")
        elif new_state is LifecycleState.CONNECTED:
            self.phone_number = transition.metadata.get("phone_number")
            self.qr_payload = None
        else:
            self.qr_payload = None

        self._logger.state_change(
            old_state=transition.old_state.value,
            new_state=new_state.value,
            reason=transition.reason,
        )

    def attach(self, provider: SessionProvider) -> None:
        """Bind a fresh provider to this device."""
        self._provider = provider
        self.closing = False

    def start_dispatch(self, handler: EventHandler) -> None:
        """Consume the provider's event stream in a single task."""
        if self._provider is None:
            raise RuntimeError("no provider attached")
        self._dispatch_task = asyncio.create_task(
            self._dispatch(self._provider, handler),
            name=f"dispatch-{self._device_id}",
        )

    async def _dispatch(self, provider: SessionProvider, handler: EventHandler) -> None:
        async for event in provider.events():
            try:
                await handler(self, event)
            except Exception as e:
                # One bad event must not stop the stream
                self._logger.event_failed(type(event).__name__, str(e))
                record_error("dispatch", type(e).__name__)

    async def initialize(self, timeout_s: float) -> None:
        """Run provider.connect(), bounded by timeout_s.

        Raises:
            InitializationTimeoutError: connect did not finish in time
            InitializationCancelledError: close() cancelled the attempt
            Exception: whatever connect raised
        """
        if self._provider is None:
            raise RuntimeError("no provider attached")

        task = asyncio.create_task(
            self._provider.connect(),
            name=f"connect-{self._device_id}",
        )
        self._connect_task = task
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_s)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._connect_task is task:
                self._connect_task = None

        if not done:
            task.cancel()
            await asyncio.wait({task})
            raise InitializationTimeoutError(self._device_id, timeout_s)

        if task.cancelled() or self.closing:
            raise InitializationCancelledError(self._device_id)

        exc = task.exception()
        if exc is not None:
            raise exc

    async def close(self, teardown_timeout_s: float) -> None:
        """Cancel any in-flight initialization, then tear the provider down.

        The provider is unbound even if teardown fails.

        Raises:
            ProviderTeardownError: Teardown raised or timed out
        """
        self.closing = True
        provider = self._provider
        if provider is None:
            return

        connect_task = self._connect_task
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
            await asyncio.wait({connect_task})

        try:
            await with_timeout(
                provider.teardown(),
                timeout_s=teardown_timeout_s,
                operation="provider teardown",
                details={"device_id": self._device_id},
            )
        except AsyncTimeoutError as e:
            raise ProviderTeardownError(self._device_id, e.message) from e
        except Exception as e:
            raise ProviderTeardownError(self._device_id, str(e)) from e
        finally:
            self._provider = None
            await self._stop_dispatch()

    async def _stop_dispatch(self) -> None:
        task = self._dispatch_task
        self._dispatch_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.wait({task})
