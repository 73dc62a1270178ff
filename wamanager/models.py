"""Data models shared by the orchestrator, webhook dispatcher and store."""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from wamanager.config.constants import LIMITS
from wamanager.exceptions import DeliveryFailure


class MessageDirection(Enum):
    """Direction of a recorded message."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class ProviderMessage:
    """Inbound message as delivered by a session provider."""

    message_id: str  # Provider-assigned (serialized) id
    from_address: str
    to_address: str
    body: str = ""
    message_type: str = "chat"
    timestamp: int = field(default_factory=lambda: int(time.time()))
    from_name: str | None = None  # Sender's profile display name
    has_media: bool = False
    is_forwarded: bool = False
    is_status: bool = False
    broadcast: bool = False
    from_me: bool = False

    @property
    def is_group(self) -> bool:
        """Whether the sender address denotes a group conversation."""
        return LIMITS.GROUP_SUFFIX in self.from_address

    @property
    def sender_name(self) -> str:
        """Profile display name, else the local part of the sender address."""
        return self.from_name or self.from_address.split("@")[0]


@dataclass(frozen=True)
class SentMessage:
    """Provider acknowledgment of a sent message."""

    id: str
    from_address: str
    to_address: str
    timestamp: int


@dataclass(frozen=True)
class Conversation:
    """Summary of a provider conversation."""

    id: str
    name: str
    is_group: bool = False
    unread_count: int = 0
    timestamp: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MessageRecord:
    """Persisted inbound or outbound message. Immutable once recorded."""

    device_id: str
    external_message_id: str
    from_address: str
    to_address: str
    body: str
    message_type: str
    timestamp: int
    direction: MessageDirection
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def incoming(cls, device_id: str, message: ProviderMessage) -> MessageRecord:
        """Build the record for an inbound provider message."""
        return cls(
            device_id=device_id,
            external_message_id=message.message_id,
            from_address=message.from_address,
            to_address=message.to_address,
            body=message.body,
            message_type=message.message_type,
            timestamp=message.timestamp,
            direction=MessageDirection.INCOMING,
        )

    @classmethod
    def outgoing(cls, device_id: str, sent: SentMessage, body: str) -> MessageRecord:
        """Build the record for a message sent through a provider."""
        return cls(
            device_id=device_id,
            external_message_id=sent.id,
            from_address=sent.from_address,
            to_address=sent.to_address,
            body=body,
            message_type="chat",
            timestamp=sent.timestamp,
            direction=MessageDirection.OUTGOING,
        )


@dataclass(frozen=True)
class WebhookConfig:
    """Webhook settings of a device, read from its persisted configuration."""

    url: str | None = None
    enabled: bool = False
    response_enabled: bool = False
    body_template: str | None = None
    response_path: str | None = None

    @property
    def is_active(self) -> bool:
        """Whether inbound messages should be forwarded."""
        return self.enabled and bool(self.url)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> WebhookConfig:
        """Build from a persisted device row."""
        return cls(
            url=record.get("webhook_url"),
            enabled=bool(record.get("webhook_enabled")),
            response_enabled=bool(record.get("webhook_response_enabled")),
            body_template=record.get("webhook_body_template") or None,
            response_path=record.get("webhook_response_path") or None,
        )


class DeliveryOutcome(Enum):
    """Classification of one webhook delivery attempt."""

    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    DNS = "dns"
    OTHER = "other"

    @classmethod
    def from_failure(cls, kind: DeliveryFailure) -> DeliveryOutcome:
        return cls(kind.value)


@dataclass
class WebhookDeliveryResult:
    """Transient result of dispatching one inbound message to a webhook."""

    outcome: DeliveryOutcome
    status_code: int | None = None
    templated: bool = False
    reply: str | None = None
    reply_sent: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DeliveryOutcome.SUCCESS
