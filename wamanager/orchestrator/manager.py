"""Session Orchestrator - Owns every device session.

Provides:
- Session creation with bounded retries and a bounded initialization
- Restart, disconnect and concurrent shutdown fan-out
- Provider event handling (state persistence, message pipeline,
  automatic reconnect)
- Startup initialization of every persisted device
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

from wamanager.config.constants import LIMITS
from wamanager.exceptions import (
    DeviceNotFoundError,
    InitializationCancelledError,
    InitializationTimeoutError,
    ProviderTeardownError,
    RetryLimitExceededError,
    SendNotConnectedError,
    SessionAlreadyExistsError,
)
from wamanager.models import Conversation, MessageRecord, SentMessage
from wamanager.observability.logging import get_logger
from wamanager.observability.metrics import (
    record_error,
    record_init_failure,
    record_init_latency,
    record_message,
    record_reconnect,
    record_session_created,
    update_active_sessions,
    update_session_states,
)
from wamanager.orchestrator.session import DeviceSession
from wamanager.orchestrator.state_machine import LifecycleState, StateTransition
from wamanager.provider.events import (
    Authenticated,
    AuthFailure,
    Disconnected,
    LoadingProgress,
    MessageReceived,
    PairingChallenge,
    ProviderEvent,
    Ready,
    StateChanged,
)
from wamanager.provider.factory import ProviderFactory
from wamanager.store.database import SessionStore
from wamanager.webhook.dispatcher import WebhookDispatcher

logger = get_logger(__name__)

# Transitions reported by get_status
STATUS_TRANSITIONS = 10


@dataclass
class OrchestratorConfig:
    """Timings and limits used by the orchestrator."""

    max_init_retries: int = LIMITS.MAX_INIT_RETRIES
    init_timeout_s: float = LIMITS.INIT_TIMEOUT_S
    teardown_timeout_s: float = LIMITS.TEARDOWN_TIMEOUT_S
    reconnect_delay_s: float = LIMITS.RECONNECT_DELAY_S
    restart_settle_s: float = LIMITS.RESTART_SETTLE_S
    init_stagger_s: float = LIMITS.INIT_STAGGER_S


def normalize_address(to: str) -> str:
    """Address a bare number as a contact; full addresses pass through."""
    if "@" in to:
        return to
    return f"{to}{LIMITS.CONTACT_SUFFIX}"


class SessionOrchestrator:
    """Manages the sessions of all devices.

    Usage:
        orchestrator = SessionOrchestrator(
            store=store,
            provider_factory=get_provider_factory("mock"),
            dispatcher=WebhookDispatcher(store),
        )

        await orchestrator.create_session("device-1", "Sales phone")
        await orchestrator.send_message("device-1", "6281234567890", "hello")
        await orchestrator.disconnect_all()
    """

    def __init__(
        self,
        store: SessionStore,
        provider_factory: ProviderFactory,
        dispatcher: WebhookDispatcher,
        provider_options: dict[str, Any] | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self._store = store
        self._provider_factory = provider_factory
        self._provider_options = dict(provider_options or {})
        self._dispatcher = dispatcher
        self._config = config or OrchestratorConfig()

        self._sessions: dict[str, DeviceSession] = {}
        self._reconnect_tasks: dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self._shutting_down = False

        dispatcher.set_reply_sender(self.send_message)

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def active_count(self) -> int:
        """Number of devices with a bound provider."""
        return sum(1 for s in self._sessions.values() if s.is_active)

    def get_session(self, device_id: str) -> DeviceSession | None:
        """In-memory record of a device, active or not."""
        return self._sessions.get(device_id)

    def is_active(self, device_id: str) -> bool:
        session = self._sessions.get(device_id)
        return session is not None and session.is_active

    def active_device_ids(self) -> list[str]:
        return [d for d, s in self._sessions.items() if s.is_active]

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    async def create_session(self, device_id: str, name: str) -> DeviceSession:
        """Create and initialize the session of a device.

        Args:
            device_id: Device identifier
            name: Display name

        Returns:
            The initialized DeviceSession

        Raises:
            SessionAlreadyExistsError: A session is already active
            RetryLimitExceededError: Too many consecutive failed attempts
            InitializationTimeoutError: connect did not finish in time
            InitializationCancelledError: A teardown cancelled the attempt,
                or the orchestrator is shutting down
            Exception: Any provider initialization error
        """
        async with self._lock:
            if self._shutting_down:
                record_session_created("cancelled")
                raise InitializationCancelledError(device_id)

            session = self._sessions.get(device_id)
            if session is not None and session.is_active:
                record_session_created("already_exists")
                raise SessionAlreadyExistsError(device_id)

            if session is None:
                session = DeviceSession(device_id, name, sink=self._store)
                session.machine.on_state_change(
                    lambda transition, s=session: self._persist_transition(s, transition)
                )
                self._sessions[device_id] = session
            else:
                session.display_name = name

            if session.init_attempts >= self._config.max_init_retries:
                record_session_created("retry_limit")
                raise RetryLimitExceededError(
                    device_id, session.init_attempts, self._config.max_init_retries
                )

            provider = self._provider_factory(device_id, dict(self._provider_options))
            session.attach(provider)
            session.start_dispatch(self._handle_event)
            self._update_gauges()

        attempt = session.init_attempts + 1
        session.logger.init_started(attempt, self._config.max_init_retries)
        start = time.monotonic()

        try:
            await session.machine.handle_initialize()
            await session.initialize(self._config.init_timeout_s)
        except InitializationCancelledError:
            # Whoever closed the session owns its cleanup
            record_session_created("cancelled")
            raise
        except Exception as e:
            await self._fail_initialization(session, e)
            raise

        elapsed_s = time.monotonic() - start
        session.init_attempts = 0
        session.last_error = None
        session.logger.init_succeeded(elapsed_s)
        record_init_latency(elapsed_s)
        record_session_created("success")
        return session

    async def _fail_initialization(self, session: DeviceSession, error: Exception) -> None:
        session.init_attempts += 1
        session.last_error = str(error)
        session.logger.init_failed(str(error), session.init_attempts)

        reason = "timeout" if isinstance(error, InitializationTimeoutError) else "error"
        record_init_failure(reason)
        record_session_created("failure")

        await self._teardown(session, reason="init_failed")

    async def restart_session(
        self,
        device_id: str,
        reset_attempts: bool = False,
    ) -> DeviceSession | None:
        """Tear down, settle, then recreate from the persisted configuration.

        Args:
            device_id: Device identifier
            reset_attempts: Clear the retry counter first (manual restart)

        Returns:
            The new session, or None if the device has no persisted configuration
        """
        session = self._sessions.get(device_id)
        if session is not None:
            session.logger.restart_initiated()

        await self.disconnect_session(device_id)
        await asyncio.sleep(self._config.restart_settle_s)

        row = self._store.find_device(device_id)
        if row is None:
            logger.warning("restart_skipped", device_id=device_id, reason="no persisted configuration")
            return None

        session = self._sessions.get(device_id)
        if reset_attempts and session is not None:
            session.init_attempts = 0
            session.last_error = None

        return await self.create_session(device_id, row["name"])

    async def disconnect_session(self, device_id: str) -> bool:
        """Tear down a device's session. Idempotent.

        Returns:
            True if a session was active and has been torn down
        """
        await self._cancel_reconnect(device_id)

        async with self._lock:
            session = self._sessions.get(device_id)
            if session is None or not session.is_active or session.closing:
                return False
            session.closing = True

        await self._teardown(session, reason="disconnect_requested")
        session.logger.torn_down()
        return True

    async def disconnect_all(self) -> None:
        """Tear down every active session concurrently; waits for all to settle.

        No session is created or reconnected afterwards.
        """
        self._shutting_down = True
        await asyncio.gather(
            *(self._cancel_reconnect(d) for d in list(self._reconnect_tasks))
        )

        device_ids = self.active_device_ids()
        if not device_ids:
            return

        results = await asyncio.gather(
            *(self.disconnect_session(d) for d in device_ids),
            return_exceptions=True,
        )
        for device_id, result in zip(device_ids, results):
            if isinstance(result, BaseException):
                logger.error("disconnect_failed", device_id=device_id, error=str(result))
                record_error("orchestrator", type(result).__name__)

        logger.info("all_sessions_disconnected", count=len(device_ids))

    async def remove_device(self, device_id: str) -> None:
        """Disconnect a device and forget its in-memory record."""
        await self.disconnect_session(device_id)
        async with self._lock:
            self._sessions.pop(device_id, None)
            self._update_gauges()

    async def initialize_devices(self) -> None:
        """Create a session for every persisted device, one at a time.

        Failures are logged; they never abort the remaining devices.
        """
        devices = self._store.find_all_devices()
        logger.info("initializing_devices", count=len(devices))

        for index, device in enumerate(devices):
            if index > 0:
                await asyncio.sleep(self._config.init_stagger_s)
            try:
                await self.create_session(device["id"], device["name"])
            except Exception as e:
                logger.error(
                    "device_init_failed",
                    device_id=device["id"],
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def _teardown(self, session: DeviceSession, reason: str) -> None:
        try:
            await session.close(self._config.teardown_timeout_s)
        except ProviderTeardownError as e:
            session.logger.teardown_failed(e.message)
            record_error("provider", type(e).__name__)
        finally:
            await session.machine.reset(reason)
            self._update_gauges()

    # -------------------------------------------------------------------------
    # Queries and sending
    # -------------------------------------------------------------------------

    def get_status(self, device_id: str) -> dict[str, Any] | None:
        """Persisted configuration plus liveness; None if unknown.

        Devices with an in-memory session also report how long they have
        been in their current state and their most recent transitions.
        """
        device = self._store.find_device(device_id)
        if device is None:
            return None
        device["is_active"] = self.is_active(device_id)

        session = self._sessions.get(device_id)
        if session is not None:
            machine = session.machine
            device["state_duration_s"] = round(machine.get_state_duration_s(), 3)
            device["recent_transitions"] = [
                {
                    "from": t.old_state.value,
                    "to": t.new_state.value,
                    "reason": t.reason,
                    "timestamp": t.timestamp,
                }
                for t in machine.history[-STATUS_TRANSITIONS:]
            ]
        return device

    def _require_active(self, device_id: str) -> DeviceSession:
        session = self._sessions.get(device_id)
        if session is None or session.provider is None:
            raise DeviceNotFoundError(device_id)
        return session

    async def send_message(self, device_id: str, to: str, body: str) -> SentMessage:
        """Send a text message through a connected device.

        Raises:
            DeviceNotFoundError: No active session
            SendNotConnectedError: Session is not CONNECTED
        """
        session = self._require_active(device_id)
        if not session.machine.is_connected:
            raise SendNotConnectedError(device_id, session.state.value)

        to_address = normalize_address(to)
        sent = await session.provider.send(to_address, body)

        self._store.create_message(MessageRecord.outgoing(device_id, sent, body))
        self._store.increment_stat(device_id, "messages_sent")
        record_message("outgoing")
        session.logger.message_sent(to_address)
        return sent

    async def list_conversations(self, device_id: str) -> list[Conversation]:
        """Conversations of an active device.

        Raises:
            DeviceNotFoundError: No active session
        """
        session = self._require_active(device_id)
        return await session.provider.list_conversations()

    # -------------------------------------------------------------------------
    # Provider events
    # -------------------------------------------------------------------------

    async def _handle_event(self, session: DeviceSession, event: ProviderEvent) -> None:
        machine = session.machine

        if isinstance(event, PairingChallenge):
            if await machine.handle_pairing_challenge(event.payload):
                session.logger.qr_ready()

        elif isinstance(event, Ready):
            if await machine.handle_ready(event.phone_number):
                session.init_attempts = 0
                session.logger.connected(event.phone_number)

        elif isinstance(event, Authenticated):
            session.logger.authenticated()

        elif isinstance(event, MessageReceived):
            message = event.message
            if message.is_status or message.from_me:
                logger.debug(
                    "message_skipped",
                    device_id=session.device_id,
                    is_status=message.is_status,
                    from_me=message.from_me,
                )
                return
            session.logger.message_received(
                message.from_address, message.message_type, message.body[:50]
            )
            record_message("incoming")
            await self._dispatcher.handle_inbound(session.device_id, message)

        elif isinstance(event, Disconnected):
            if await machine.handle_disconnect(event.reason) is None:
                return
            will_reconnect = not session.closing
            session.logger.disconnected(event.reason, will_reconnect)
            if will_reconnect:
                self._schedule_reconnect(session.device_id)

        elif isinstance(event, AuthFailure):
            if await machine.handle_auth_failure(event.reason):
                session.logger.auth_failure(event.reason)

        elif isinstance(event, LoadingProgress):
            session.logger.loading(event.percent, event.label)

        elif isinstance(event, StateChanged):
            session.logger.provider_state(event.label)

    def _persist_transition(self, session: DeviceSession, transition: StateTransition) -> None:
        fields: dict[str, Any] = {"status": transition.new_state.value}
        if transition.new_state is LifecycleState.QR_READY:
            fields["qr_code"] = session.qr_payload
        elif transition.new_state is LifecycleState.CONNECTED:
            fields["phone_number"] = session.phone_number
            fields["qr_code"] = None
        else:
            fields["qr_code"] = None

        self._store.update_device(session.device_id, fields)
        self._update_gauges()

    # -------------------------------------------------------------------------
    # Automatic reconnect
    # -------------------------------------------------------------------------

    def _schedule_reconnect(self, device_id: str) -> None:
        if self._shutting_down:
            return
        previous = self._reconnect_tasks.get(device_id)
        if previous is not None and not previous.done():
            if previous is asyncio.current_task():
                return
            previous.cancel()

        task = asyncio.create_task(
            self._reconnect(device_id),
            name=f"reconnect-{device_id}",
        )
        # Registered until done so teardown can always find and cancel it
        self._reconnect_tasks[device_id] = task
        task.add_done_callback(lambda t, d=device_id: self._forget_reconnect(d, t))

    def _forget_reconnect(self, device_id: str, task: asyncio.Task) -> None:
        if self._reconnect_tasks.get(device_id) is task:
            del self._reconnect_tasks[device_id]

    async def _cancel_reconnect(self, device_id: str) -> None:
        """Cancel a device's reconnect and wait for it to settle.

        A reconnect restarting its own device is left running.
        """
        task = self._reconnect_tasks.get(device_id)
        if task is None or task is asyncio.current_task():
            return
        self._forget_reconnect(device_id, task)
        task.cancel()
        await asyncio.wait({task})

    async def _reconnect(self, device_id: str) -> None:
        await asyncio.sleep(self._config.reconnect_delay_s)

        session = self._sessions.get(device_id)
        if session is not None:
            session.logger.reconnect_attempt()
        record_reconnect("auto")

        try:
            await self.restart_session(device_id)
        except Exception as e:
            if session is not None:
                session.logger.reconnect_failed(str(e))
            else:
                logger.error("reconnect_failed", device_id=device_id, error=str(e))

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _update_gauges(self) -> None:
        update_active_sessions(self.active_count)
        counts = {state.value: 0 for state in LifecycleState}
        for session in self._sessions.values():
            counts[session.state.value] += 1
        update_session_states(counts)
