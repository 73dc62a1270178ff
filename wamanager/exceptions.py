"""WA Manager Exception Hierarchy.

Provides structured exception classes for session orchestration and
webhook dispatch.

Hierarchy:
    WAManagerError (base)
    ├── SessionError
    │   ├── DeviceNotFoundError
    │   ├── SessionAlreadyExistsError
    │   ├── RetryLimitExceededError
    │   ├── InitializationTimeoutError
    │   ├── InitializationCancelledError
    │   ├── SendNotConnectedError
    │   ├── SessionStateError
    │   └── ProviderTeardownError
    ├── ConfigurationError
    │   ├── MissingConfigError
    │   └── InvalidConfigError
    ├── WebhookError
    │   ├── TemplateRenderError
    │   └── WebhookDeliveryError
    └── StoreError
"""

from enum import Enum
from typing import Any


class WAManagerError(Exception):
    """Base exception for all WA Manager errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(WAManagerError):
    """Base exception for device session errors."""

    def __init__(
        self,
        message: str,
        device_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        details = details or {}
        if device_id:
            details["device_id"] = device_id
        super().__init__(message, details, recoverable)
        self.device_id = device_id


class DeviceNotFoundError(SessionError):
    """Raised when no active session exists for a device."""

    def __init__(self, device_id: str) -> None:
        super().__init__(
            message=f"Device not found: {device_id}",
            device_id=device_id,
            recoverable=False,
        )


class SessionAlreadyExistsError(SessionError):
    """Raised when a session is already active for a device."""

    def __init__(self, device_id: str) -> None:
        super().__init__(
            message=f"Device already exists: {device_id}",
            device_id=device_id,
            recoverable=False,
        )


class RetryLimitExceededError(SessionError):
    """Raised when a device has used up its initialization attempts."""

    def __init__(self, device_id: str, attempts: int, max_retries: int) -> None:
        super().__init__(
            message=f"Maximum initialization attempts reached: {attempts}/{max_retries}",
            device_id=device_id,
            details={"attempts": attempts, "max_retries": max_retries},
            recoverable=True,  # A manual restart resets the counter
        )


class InitializationTimeoutError(SessionError):
    """Raised when provider initialization exceeds its time budget."""

    def __init__(self, device_id: str, timeout_s: float) -> None:
        super().__init__(
            message=f"Initialization timeout after {timeout_s}s",
            device_id=device_id,
            details={"timeout_s": timeout_s},
            recoverable=True,
        )
        self.timeout_s = timeout_s


class InitializationCancelledError(SessionError):
    """Raised when a teardown cancels an in-flight initialization."""

    def __init__(self, device_id: str) -> None:
        super().__init__(
            message="Initialization cancelled by teardown",
            device_id=device_id,
            recoverable=True,
        )


class SendNotConnectedError(SessionError):
    """Raised when sending through a session that is not connected."""

    def __init__(self, device_id: str, state: str) -> None:
        super().__init__(
            message="Device not connected",
            device_id=device_id,
            details={"state": state},
            recoverable=True,
        )
        self.state = state


class SessionStateError(SessionError):
    """Raised for invalid lifecycle state transitions."""

    def __init__(
        self,
        message: str,
        device_id: str | None = None,
        current_state: str | None = None,
        target_state: str | None = None,
    ) -> None:
        details = {}
        if current_state:
            details["current_state"] = current_state
        if target_state:
            details["target_state"] = target_state
        super().__init__(message, device_id, details, recoverable=False)


class ProviderTeardownError(SessionError):
    """Raised when a session provider fails to release its resources."""

    def __init__(self, device_id: str, reason: str) -> None:
        super().__init__(
            message=f"Provider teardown failed: {reason}",
            device_id=device_id,
            details={"reason": reason},
            recoverable=True,
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(WAManagerError):
    """Base exception for configuration-related errors."""

    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""

    def __init__(self, config_key: str, description: str | None = None) -> None:
        message = f"Missing required configuration: {config_key}"
        if description:
            message += f" - {description}"
        super().__init__(
            message=message,
            details={"config_key": config_key},
            recoverable=False,
        )


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(
        self,
        config_key: str,
        value: Any,
        reason: str,
    ) -> None:
        super().__init__(
            message=f"Invalid configuration for {config_key}: {reason}",
            details={
                "config_key": config_key,
                "value": str(value),
                "reason": reason,
            },
            recoverable=False,
        )


# =============================================================================
# Webhook Errors
# =============================================================================


class WebhookError(WAManagerError):
    """Base exception for webhook-related errors."""

    pass


class TemplateRenderError(WebhookError):
    """Raised when a body template does not produce valid JSON."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Template rendering failed: {reason}",
            details={"reason": reason},
            recoverable=True,  # Default payload is used instead
        )


class DeliveryFailure(Enum):
    """Classification of a failed webhook delivery."""

    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    DNS = "dns"
    HTTP_ERROR = "http_error"
    OTHER = "other"


class WebhookDeliveryError(WebhookError):
    """Raised when a webhook cannot be delivered.

    Deliveries are best-effort and never retried.
    """

    def __init__(
        self,
        kind: DeliveryFailure,
        reason: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"kind": kind.value, "reason": reason}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"Webhook delivery failed: {reason}",
            details=details,
            recoverable=False,
        )
        self.kind = kind
        self.status_code = status_code


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(WAManagerError):
    """Raised when the session store rejects an operation."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            message=f"Store operation {operation} failed: {reason}",
            details={"operation": operation, "reason": reason},
            recoverable=False,
        )
