"""Lifecycle State Machine - 5-state FSM for a device session.

States:
- DISCONNECTED: No live provider connection (initial)
- INITIALIZING: Provider connect in progress
- QR_READY: Provider issued a pairing challenge; waiting for the scan
- CONNECTED: Account ready; messages can be sent
- AUTH_FAILURE: Credentials rejected; stays here until a manual restart

Transitions are driven by provider events. Informational events
(loading progress, provider state labels) never change the state.
"""

import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from wamanager.exceptions import SessionStateError
from wamanager.observability.logging import get_logger

logger = get_logger(__name__)


class LifecycleState(Enum):
    """Device lifecycle state. Values are the persisted status strings."""

    DISCONNECTED = "disconnected"
    INITIALIZING = "initializing"
    QR_READY = "qr_ready"
    CONNECTED = "connected"
    AUTH_FAILURE = "auth_failure"


# Valid state transitions
VALID_TRANSITIONS: dict[LifecycleState, set[LifecycleState]] = {
    LifecycleState.DISCONNECTED: {LifecycleState.INITIALIZING, LifecycleState.AUTH_FAILURE},
    LifecycleState.INITIALIZING: {
        LifecycleState.QR_READY,
        LifecycleState.CONNECTED,
        LifecycleState.DISCONNECTED,
        LifecycleState.AUTH_FAILURE,
    },
    LifecycleState.QR_READY: {
        LifecycleState.QR_READY,
        LifecycleState.CONNECTED,
        LifecycleState.DISCONNECTED,
        LifecycleState.AUTH_FAILURE,
    },
    LifecycleState.CONNECTED: {LifecycleState.DISCONNECTED, LifecycleState.AUTH_FAILURE},
    LifecycleState.AUTH_FAILURE: {LifecycleState.DISCONNECTED},
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    old_state: LifecycleState
    new_state: LifecycleState
    timestamp: float  # Wall clock, seconds
    reason: str
    metadata: dict[str, Any] = field(default_factory=dict)


StateChangeCallback = Callable[[StateTransition], Any]


class LifecycleStateMachine:
    """Per-device lifecycle FSM.

    Usage:
        fsm = LifecycleStateMachine(device_id="device-1")
        fsm.on_state_change(persist_status)

        await fsm.handle_initialize()
        await fsm.handle_pairing_challenge("2@abc...")
        await fsm.handle_ready("6281234567890")
    """

    def __init__(self, device_id: str) -> None:
        self._device_id = device_id
        self._state = LifecycleState.DISCONNECTED
        self._entered_at = time.monotonic()

        self._on_change_callbacks: list[StateChangeCallback] = []

        self._history: list[StateTransition] = []
        self._max_history = 100

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def is_connected(self) -> bool:
        return self._state is LifecycleState.CONNECTED

    def on_state_change(self, callback: StateChangeCallback) -> None:
        """Register callback for any state change."""
        self._on_change_callbacks.append(callback)

    async def transition_to(
        self,
        new_state: LifecycleState,
        reason: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> StateTransition:
        """Transition to a new state.

        Raises:
            SessionStateError: If the transition is not allowed
        """
        old_state = self._state

        if new_state not in VALID_TRANSITIONS[old_state]:
            raise SessionStateError(
                f"Invalid transition: {old_state.value} -> {new_state.value}",
                device_id=self._device_id,
                current_state=old_state.value,
                target_state=new_state.value,
            )

        transition = StateTransition(
            old_state=old_state,
            new_state=new_state,
            timestamp=time.time(),
            reason=reason,
            metadata=metadata or {},
        )

        self._state = new_state
        self._entered_at = time.monotonic()

        self._history.append(transition)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        await self._call_callbacks(self._on_change_callbacks, transition)

        return transition

    async def handle_initialize(self) -> StateTransition:
        """Create/restart request: start connecting."""
        return await self.transition_to(LifecycleState.INITIALIZING, "initialize")

    async def handle_pairing_challenge(self, payload: str) -> StateTransition | None:
        """Provider issued (or refreshed) a pairing challenge."""
        if self._state not in (LifecycleState.INITIALIZING, LifecycleState.QR_READY):
            return None
        return await self.transition_to(
            LifecycleState.QR_READY, "pairing_challenge", {"qr_payload": payload}
        )

    async def handle_ready(self, phone_number: str) -> StateTransition | None:
        """Provider reports the account is ready."""
        if self._state not in (LifecycleState.INITIALIZING, LifecycleState.QR_READY):
            return None
        return await self.transition_to(
            LifecycleState.CONNECTED, "ready", {"phone_number": phone_number}
        )

    async def handle_disconnect(self, reason: str) -> StateTransition | None:
        """Provider-reported disconnect.

        Ignored while already DISCONNECTED or in AUTH_FAILURE.
        """
        if self._state in (LifecycleState.DISCONNECTED, LifecycleState.AUTH_FAILURE):
            return None
        return await self.transition_to(LifecycleState.DISCONNECTED, reason or "disconnected")

    async def handle_auth_failure(self, reason: str) -> StateTransition | None:
        if self._state is LifecycleState.AUTH_FAILURE:
            return None
        return await self.transition_to(LifecycleState.AUTH_FAILURE, reason or "auth_failure")

    async def reset(self, reason: str = "session_reset") -> StateTransition | None:
        """Return to DISCONNECTED after teardown or a failed initialization."""
        if self._state is LifecycleState.DISCONNECTED:
            return None
        return await self.transition_to(LifecycleState.DISCONNECTED, reason)

    async def _call_callbacks(
        self,
        callbacks: list[StateChangeCallback],
        transition: StateTransition,
    ) -> None:
        for callback in callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(transition)
                else:
                    callback(transition)
            except Exception as e:
                logger.error(
                    "state_callback_failed",
                    device_id=self._device_id,
                    new_state=transition.new_state.value,
                    error=str(e),
                )

    @property
    def history(self) -> list[StateTransition]:
        """Transition history (most recent last)."""
        return self._history.copy()

    def get_state_duration_s(self) -> float:
        """Time spent in the current state."""
        return time.monotonic() - self._entered_at
