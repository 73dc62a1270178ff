"""Structured Logging - JSON logs with correlation.

Provides structured logging for:
- Device session lifecycle (create, init, state changes, teardown)
- Inbound/outbound messages
- Webhook delivery and auto-reply

All device logs include device_id for correlation. Loggers given a sink
also append operator-facing events to the session store's device log.
"""

import logging
import sys
from typing import Any, Protocol

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; else human-readable
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging (uvicorn, httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


def bind_device(device_id: str) -> None:
    """Bind device_id to all logs in current context."""
    structlog.contextvars.bind_contextvars(device_id=device_id)


def unbind_device() -> None:
    """Remove device_id from log context."""
    structlog.contextvars.unbind_contextvars("device_id")


class LogSink(Protocol):
    """Anything that can persist a per-device log line (the session store)."""

    def create_log(self, device_id: str, level: str, message: str) -> None:
        ...


class _SinkLogger:
    """Shared plumbing for loggers that mirror events into a LogSink."""

    def __init__(self, channel: str, device_id: str, sink: LogSink | None = None) -> None:
        self._device_id = device_id
        self._sink = sink
        self._log = get_logger(channel).bind(device_id=device_id)

    @property
    def device_id(self) -> str:
        return self._device_id

    def _record(self, level: str, message: str) -> None:
        if self._sink is None:
            return
        try:
            self._sink.create_log(self._device_id, level, message)
        except Exception as e:
            self._log.error("log_sink_failed", error=str(e))


# -----------------------------------------------------------------------------
# Event-specific logging functions
# -----------------------------------------------------------------------------


class DeviceLogger(_SinkLogger):
    """Logger for device session events."""

    def __init__(self, device_id: str, sink: LogSink | None = None) -> None:
        super().__init__("session", device_id, sink)

    def init_started(self, attempt: int, max_retries: int) -> None:
        """Log initialization attempt start."""
        self._log.info(
            "init_started",
            event_type="session.init_started",
            attempt=attempt,
            max_retries=max_retries,
        )

    def init_succeeded(self, elapsed_s: float) -> None:
        """Log successful initialization."""
        self._log.info(
            "init_succeeded",
            event_type="session.init_succeeded",
            elapsed_s=elapsed_s,
        )

    def init_failed(self, error: str, attempts: int) -> None:
        """Log failed initialization."""
        self._log.error(
            "init_failed",
            event_type="session.init_failed",
            error=error,
            attempts=attempts,
        )
        self._record("error", f"Initialization failed: {error}")

    def state_change(
        self,
        old_state: str,
        new_state: str,
        reason: str,
    ) -> None:
        """Log lifecycle state transition."""
        self._log.info(
            "state_change",
            event_type="session.state_change",
            old_state=old_state,
            new_state=new_state,
            reason=reason,
        )

    def qr_ready(self) -> None:
        """Log pairing challenge received."""
        self._log.info("qr_ready", event_type="session.qr_ready")
        self._record("info", "QR Code generated - Ready to scan")

    def connected(self, phone_number: str) -> None:
        """Log account ready."""
        self._log.info(
            "connected",
            event_type="session.connected",
            phone_number=phone_number,
        )
        self._record("info", f"Connected successfully with number {phone_number}")

    def authenticated(self) -> None:
        """Log successful provider authentication."""
        self._log.info("authenticated", event_type="session.authenticated")
        self._record("info", "Authentication successful")

    def auth_failure(self, reason: str) -> None:
        """Log authentication failure."""
        self._log.error(
            "auth_failure",
            event_type="session.auth_failure",
            reason=reason,
        )
        self._record("error", f"Authentication failed: {reason}")

    def disconnected(self, reason: str, will_reconnect: bool) -> None:
        """Log provider-reported disconnect."""
        self._log.warning(
            "disconnected",
            event_type="session.disconnected",
            reason=reason,
            will_reconnect=will_reconnect,
        )
        self._record("warn", f"Disconnected: {reason}")

    def reconnect_attempt(self) -> None:
        """Log auto-reconnect start."""
        self._log.info("reconnect_attempt", event_type="session.reconnect")

    def reconnect_failed(self, error: str) -> None:
        """Log auto-reconnect failure."""
        self._log.error(
            "reconnect_failed",
            event_type="session.reconnect_failed",
            error=error,
        )

    def restart_initiated(self) -> None:
        """Log restart request."""
        self._log.info("restart_initiated", event_type="session.restart")
        self._record("info", "Device restart initiated")

    def torn_down(self) -> None:
        """Log completed teardown."""
        self._log.info("torn_down", event_type="session.torn_down")
        self._record("info", "Device disconnected")

    def teardown_failed(self, error: str) -> None:
        """Log provider teardown failure (non-fatal)."""
        self._log.error(
            "teardown_failed",
            event_type="session.teardown_failed",
            error=error,
        )

    def loading(self, percent: int, label: str) -> None:
        """Log provider loading progress."""
        self._log.info(
            "loading",
            event_type="session.loading",
            percent=percent,
            label=label,
        )

    def provider_state(self, label: str) -> None:
        """Log informational provider state change."""
        self._log.info(
            "provider_state",
            event_type="session.provider_state",
            label=label,
        )

    def message_received(self, from_address: str, message_type: str, preview: str) -> None:
        """Log inbound message."""
        self._log.info(
            "message_received",
            event_type="message.received",
            from_address=from_address,
            message_type=message_type,
            preview=preview,
        )
        self._record("info", f"Received from {from_address}: {message_type}")

    def message_sent(self, to_address: str) -> None:
        """Log outbound message."""
        self._log.info(
            "message_sent",
            event_type="message.sent",
            to_address=to_address,
        )

    def event_failed(self, event: str, error: str) -> None:
        """Log a provider event whose handling raised."""
        self._log.error(
            "event_failed",
            event_type="session.event_failed",
            event=event,
            error=error,
        )
        self._record("error", f"Message handling error: {error}")


class WebhookLogger(_SinkLogger):
    """Logger for webhook dispatch events."""

    def __init__(self, device_id: str, sink: LogSink | None = None) -> None:
        super().__init__("webhook", device_id, sink)

    def payload_built(self, templated: bool) -> None:
        """Log payload construction."""
        self._log.debug(
            "payload_built",
            event_type="webhook.payload_built",
            templated=templated,
        )
        if templated:
            self._record("info", "Custom payload built")

    def payload_fallback(self, error: str) -> None:
        """Log template failure and default payload fallback."""
        self._log.warning(
            "payload_fallback",
            event_type="webhook.payload_fallback",
            error=error,
        )
        self._record("error", f"Payload error: {error}")
        self._record("warn", "Using default payload")

    def delivered(self, url: str, status_code: int, elapsed_ms: float) -> None:
        """Log 2xx delivery."""
        self._log.info(
            "webhook_delivered",
            event_type="webhook.delivered",
            url=url,
            status_code=status_code,
            elapsed_ms=elapsed_ms,
        )
        self._record("info", f"Webhook success: {status_code}")

    def non_success(self, url: str, status_code: int, elapsed_ms: float) -> None:
        """Log a completed but non-2xx delivery."""
        self._log.warning(
            "webhook_non_success",
            event_type="webhook.non_success",
            url=url,
            status_code=status_code,
            elapsed_ms=elapsed_ms,
        )
        self._record("warn", f"Webhook returned {status_code}")

    def failed(self, url: str, kind: str, error: str) -> None:
        """Log a network-level delivery failure."""
        self._log.error(
            "webhook_failed",
            event_type="webhook.failed",
            url=url,
            kind=kind,
            error=error,
        )
        self._record("error", f"Webhook failed: {error}")

    def reply_sent(self, to_address: str, preview: str) -> None:
        """Log auto-reply sent."""
        self._log.info(
            "auto_reply_sent",
            event_type="webhook.reply_sent",
            to_address=to_address,
            preview=preview,
        )
        self._record("info", f"Auto-reply sent to {to_address}")

    def reply_missing(self) -> None:
        """Log that no reply could be extracted."""
        self._log.warning("auto_reply_missing", event_type="webhook.reply_missing")
        self._record("warn", "No reply message found in response")

    def reply_failed(self, error: str) -> None:
        """Log auto-reply send failure."""
        self._log.error(
            "auto_reply_failed",
            event_type="webhook.reply_failed",
            error=error,
        )
        self._record("error", f"Auto-reply failed: {error}")

    def test_delivery(self, url: str, outcome: str, detail: Any = None) -> None:
        """Log an operator-triggered test delivery."""
        self._log.info(
            "webhook_test",
            event_type="webhook.test",
            url=url,
            outcome=outcome,
            detail=detail,
        )
        if outcome == "success":
            self._record("info", f"Webhook test successful: {detail}")
        else:
            self._record("error", f"Webhook test failed: {detail}")


def init_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Initialize logging with defaults.

    Call this once at application startup.
    """
    configure_logging(level=level, json_format=json_format)
