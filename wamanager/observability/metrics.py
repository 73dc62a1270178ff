"""Prometheus Metrics - Session and webhook observability.

Exports:
- Session creation/initialization outcomes
- Active sessions and sessions by lifecycle state
- Message and webhook call counts
- Webhook latency
"""

from prometheus_client import Counter, Gauge, Histogram

# -----------------------------------------------------------------------------
# Latency Histograms
# -----------------------------------------------------------------------------

WEBHOOK_LATENCY = Histogram(
    "wamanager_webhook_latency_seconds",
    "Webhook delivery latency (request sent to response received)",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

INIT_LATENCY = Histogram(
    "wamanager_init_latency_seconds",
    "Provider initialization latency",
    buckets=[1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 45.0, 60.0],
)

# -----------------------------------------------------------------------------
# Counters
# -----------------------------------------------------------------------------

SESSIONS_CREATED = Counter(
    "wamanager_sessions_created_total",
    "Session creation attempts",
    ["result"],  # success, failure, cancelled, already_exists, retry_limit
)

INIT_FAILURES = Counter(
    "wamanager_init_failures_total",
    "Provider initialization failures",
    ["reason"],  # timeout, error
)

RECONNECTS = Counter(
    "wamanager_reconnects_total",
    "Session restarts",
    ["trigger"],  # auto, manual
)

MESSAGES = Counter(
    "wamanager_messages_total",
    "Messages recorded",
    ["direction"],  # incoming, outgoing
)

WEBHOOK_CALLS = Counter(
    "wamanager_webhook_calls_total",
    "Webhook delivery attempts",
    ["outcome"],  # success, http_error, connection_refused, timeout, dns, other
)

AUTO_REPLIES = Counter(
    "wamanager_auto_replies_total",
    "Auto-reply outcomes",
    ["result"],  # sent, missing, failed
)

ERRORS = Counter(
    "wamanager_errors_total",
    "Total errors by component",
    ["component", "type"],
)

# -----------------------------------------------------------------------------
# Gauges
# -----------------------------------------------------------------------------

ACTIVE_SESSIONS = Gauge(
    "wamanager_active_sessions",
    "Devices with an active session provider",
)

SESSIONS_BY_STATE = Gauge(
    "wamanager_sessions_by_state",
    "Sessions in each lifecycle state",
    ["state"],
)


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def record_session_created(result: str = "success") -> None:
    """Record session creation outcome."""
    SESSIONS_CREATED.labels(result=result).inc()


def record_init_latency(elapsed_s: float) -> None:
    """Record provider initialization time."""
    INIT_LATENCY.observe(elapsed_s)


def record_init_failure(reason: str) -> None:
    """Record initialization failure."""
    INIT_FAILURES.labels(reason=reason).inc()


def record_reconnect(trigger: str = "auto") -> None:
    """Record session restart."""
    RECONNECTS.labels(trigger=trigger).inc()


def record_message(direction: str) -> None:
    """Record a persisted message."""
    MESSAGES.labels(direction=direction).inc()


def record_webhook_call(outcome: str, elapsed_s: float | None = None) -> None:
    """Record webhook delivery attempt."""
    WEBHOOK_CALLS.labels(outcome=outcome).inc()
    if elapsed_s is not None:
        WEBHOOK_LATENCY.observe(elapsed_s)


def record_auto_reply(result: str) -> None:
    """Record auto-reply outcome."""
    AUTO_REPLIES.labels(result=result).inc()


def record_error(component: str, error_type: str) -> None:
    """Record error by component."""
    ERRORS.labels(component=component, type=error_type).inc()


def update_active_sessions(count: int) -> None:
    """Update active session gauge."""
    ACTIVE_SESSIONS.set(count)


def update_session_states(counts: dict[str, int]) -> None:
    """Update sessions-by-state gauge from a state -> count mapping."""
    for state, count in counts.items():
        SESSIONS_BY_STATE.labels(state=state).set(count)
