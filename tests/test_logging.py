"""Tests for Structured Logging.

Tests cover:
- configure_logging with JSON and console formats
- bind_device and unbind_device
- DeviceLogger and WebhookLogger events
- Mirroring of operator events into a log sink
"""

import pytest

from wamanager.observability.logging import (
    DeviceLogger,
    WebhookLogger,
    bind_device,
    configure_logging,
    get_logger,
    init_logging,
    unbind_device,
)


class RecordingSink:
    """Collects mirrored log lines."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, str, str]] = []

    def create_log(self, device_id: str, level: str, message: str) -> None:
        self.lines.append((device_id, level, message))


class BrokenSink:
    def create_log(self, device_id: str, level: str, message: str) -> None:
        raise RuntimeError("database is locked")


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_json_format(self):
        configure_logging(level="INFO", json_format=True)

    def test_configure_console_format(self):
        configure_logging(level="DEBUG", json_format=False)

    def test_init_logging(self):
        init_logging(json_format=True, level="WARNING")

    def test_get_logger(self):
        assert hasattr(get_logger("test_module"), "bind")

    def test_bind_unbind_cycle(self):
        bind_device("device-1")
        unbind_device()


class TestDeviceLogger:
    """Tests for DeviceLogger class."""

    @pytest.fixture
    def sink(self) -> RecordingSink:
        return RecordingSink()

    @pytest.fixture
    def logger(self, sink) -> DeviceLogger:
        return DeviceLogger("device-1", sink)

    def test_init(self, logger):
        assert logger.device_id == "device-1"

    def test_operator_events_mirrored(self, logger, sink):
        logger.qr_ready()
        logger.connected("6281")
        logger.disconnected("NAVIGATION", will_reconnect=True)

        assert sink.lines == [
            ("device-1", "info", "QR Code generated - Ready to scan"),
            ("device-1", "info", "Connected successfully with number 6281"),
            ("device-1", "warn", "Disconnected: NAVIGATION"),
        ]

    def test_failures_mirrored_as_errors(self, logger, sink):
        logger.init_failed("browser crashed", attempts=2)
        logger.auth_failure("revoked")

        assert [level for _, level, _ in sink.lines] == ["error", "error"]
        assert sink.lines[1][2] == "Authentication failed: revoked"

    def test_diagnostic_events_not_mirrored(self, logger, sink):
        """Loading progress and state changes stay in the process log."""
        logger.init_started(attempt=1, max_retries=3)
        logger.loading(50, "syncing")
        logger.state_change("initializing", "connected", "ready")
        logger.teardown_failed("hung")

        assert sink.lines == []

    def test_without_sink(self):
        DeviceLogger("device-1").connected("6281")

    def test_sink_failure_contained(self):
        """A failing sink never breaks the caller."""
        logger = DeviceLogger("device-1", BrokenSink())
        logger.connected("6281")


class TestWebhookLogger:
    """Tests for WebhookLogger class."""

    def test_fallback_logs_error_then_warning(self):
        sink = RecordingSink()
        WebhookLogger("device-1", sink).payload_fallback("Expecting value")

        assert sink.lines == [
            ("device-1", "error", "Payload error: Expecting value"),
            ("device-1", "warn", "Using default payload"),
        ]

    def test_delivery_events(self):
        sink = RecordingSink()
        log = WebhookLogger("device-1", sink)

        log.delivered("http://x", 200, 12.5)
        log.non_success("http://x", 500, 3.0)
        log.failed("http://x", "timeout", "timed out")

        assert [message for _, _, message in sink.lines] == [
            "Webhook success: 200",
            "Webhook returned 500",
            "Webhook failed: timed out",
        ]

    def test_template_built_only_mirrored_when_templated(self):
        sink = RecordingSink()
        log = WebhookLogger("device-1", sink)

        log.payload_built(templated=False)
        log.payload_built(templated=True)

        assert sink.lines == [("device-1", "info", "Custom payload built")]

    def test_test_delivery_outcomes(self):
        sink = RecordingSink()
        log = WebhookLogger("device-1", sink)

        log.test_delivery("http://x", "success", 200)
        log.test_delivery("http://x", "failed", "refused")

        assert sink.lines[0][1] == "info"
        assert sink.lines[1] == ("device-1", "error", "Webhook test failed: refused")
