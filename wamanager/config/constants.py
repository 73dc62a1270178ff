"""Orchestrator Constants - Fixed timings and limits.

These values define the behavioral contracts of session orchestration
and webhook dispatch. Runtime-tunable values live in Settings.
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class ManagerLimits:
    """Immutable orchestration and webhook thresholds.

    All durations in seconds.
    """

    # Session initialization
    MAX_INIT_RETRIES: Final[int] = 3  # Failed inits before RetryLimitExceeded
    INIT_TIMEOUT_S: Final[float] = 60.0  # Provider connect budget
    TEARDOWN_TIMEOUT_S: Final[float] = 15.0  # Provider teardown budget

    # Reconnect / restart
    RECONNECT_DELAY_S: Final[float] = 5.0  # Delay before auto-reconnect
    RESTART_SETTLE_S: Final[float] = 2.0  # Pause between teardown and recreate
    INIT_STAGGER_S: Final[float] = 3.0  # Pause between devices at startup

    # Webhook delivery
    WEBHOOK_TIMEOUT_S: Final[float] = 10.0  # Per-request timeout
    WEBHOOK_MAX_STATUS: Final[int] = 600  # Statuses below this are responses, not errors
    WEBHOOK_CONTENT_TYPE: Final[str] = "application/json"

    # Reply extraction: probed in order when no response path is configured
    RESPONSE_FIELDS: Final[tuple[str, ...]] = ("reply", "message", "response", "text")

    # Addressing
    GROUP_SUFFIX: Final[str] = "@g.us"
    CONTACT_SUFFIX: Final[str] = "@c.us"

    # Store queries
    DEFAULT_QUERY_LIMIT: Final[int] = 100


# Singleton instance for import convenience
LIMITS = ManagerLimits()
