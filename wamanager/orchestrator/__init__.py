"""Orchestrator module - device session lifecycle.

Provides:
- LifecycleStateMachine: Per-device 5-state FSM
- DeviceSession: Provider binding, dispatch loop, bounded init/teardown
- SessionOrchestrator: Registry of all device sessions
"""

from wamanager.orchestrator.manager import (
    OrchestratorConfig,
    SessionOrchestrator,
    normalize_address,
)
from wamanager.orchestrator.session import DeviceSession
from wamanager.orchestrator.state_machine import (
    VALID_TRANSITIONS,
    LifecycleState,
    LifecycleStateMachine,
    StateTransition,
)

__all__ = [
    "OrchestratorConfig",
    "SessionOrchestrator",
    "normalize_address",
    "DeviceSession",
    "VALID_TRANSITIONS",
    "LifecycleState",
    "LifecycleStateMachine",
    "StateTransition",
]
