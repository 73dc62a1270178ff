"""WA Manager - Multi-device messaging session orchestrator with webhook relay."""

__version__ = "1.0.0"

# Export exception hierarchy for easy importing
from wamanager.exceptions import (
    WAManagerError,
    SessionError,
    DeviceNotFoundError,
    SessionAlreadyExistsError,
    RetryLimitExceededError,
    InitializationTimeoutError,
    InitializationCancelledError,
    SendNotConnectedError,
    SessionStateError,
    ProviderTeardownError,
    ConfigurationError,
    MissingConfigError,
    InvalidConfigError,
    WebhookError,
    TemplateRenderError,
    DeliveryFailure,
    WebhookDeliveryError,
    StoreError,
)

__all__ = [
    "__version__",
    # Base
    "WAManagerError",
    # Session
    "SessionError",
    "DeviceNotFoundError",
    "SessionAlreadyExistsError",
    "RetryLimitExceededError",
    "InitializationTimeoutError",
    "InitializationCancelledError",
    "SendNotConnectedError",
    "SessionStateError",
    "ProviderTeardownError",
    # Configuration
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    # Webhook
    "WebhookError",
    "TemplateRenderError",
    "DeliveryFailure",
    "WebhookDeliveryError",
    # Store
    "StoreError",
]
