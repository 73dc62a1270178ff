"""Tests for Prometheus Metrics."""

from wamanager.observability.metrics import (
    ACTIVE_SESSIONS,
    AUTO_REPLIES,
    ERRORS,
    INIT_FAILURES,
    MESSAGES,
    RECONNECTS,
    SESSIONS_BY_STATE,
    SESSIONS_CREATED,
    WEBHOOK_CALLS,
    record_auto_reply,
    record_error,
    record_init_failure,
    record_init_latency,
    record_message,
    record_reconnect,
    record_session_created,
    record_webhook_call,
    update_active_sessions,
    update_session_states,
)


def counter_value(metric, **labels) -> float:
    return metric.labels(**labels)._value.get()


class TestCounters:
    """Tests for counter helpers."""

    def test_session_created(self):
        before = counter_value(SESSIONS_CREATED, result="success")
        record_session_created()
        assert counter_value(SESSIONS_CREATED, result="success") == before + 1

    def test_init_failure(self):
        before = counter_value(INIT_FAILURES, reason="timeout")
        record_init_failure("timeout")
        assert counter_value(INIT_FAILURES, reason="timeout") == before + 1

    def test_reconnect(self):
        before = counter_value(RECONNECTS, trigger="auto")
        record_reconnect()
        assert counter_value(RECONNECTS, trigger="auto") == before + 1

    def test_message(self):
        before = counter_value(MESSAGES, direction="incoming")
        record_message("incoming")
        assert counter_value(MESSAGES, direction="incoming") == before + 1

    def test_webhook_call(self):
        before = counter_value(WEBHOOK_CALLS, outcome="dns")
        record_webhook_call("dns", 0.2)
        record_webhook_call("dns")
        assert counter_value(WEBHOOK_CALLS, outcome="dns") == before + 2

    def test_auto_reply(self):
        before = counter_value(AUTO_REPLIES, result="missing")
        record_auto_reply("missing")
        assert counter_value(AUTO_REPLIES, result="missing") == before + 1

    def test_error(self):
        before = counter_value(ERRORS, component="webhook", type="StoreError")
        record_error("webhook", "StoreError")
        assert counter_value(ERRORS, component="webhook", type="StoreError") == before + 1

    def test_init_latency(self):
        record_init_latency(1.5)


class TestGauges:
    """Tests for gauge helpers."""

    def test_active_sessions(self):
        update_active_sessions(3)
        assert ACTIVE_SESSIONS._value.get() == 3
        update_active_sessions(0)

    def test_sessions_by_state(self):
        update_session_states({"connected": 2, "qr_ready": 1})
        assert SESSIONS_BY_STATE.labels(state="connected")._value.get() == 2
        assert SESSIONS_BY_STATE.labels(state="qr_ready")._value.get() == 1
