"""Webhook payload templating.

A body template is JSON text with {{variable}} placeholders. Rendering is
plain textual substitution followed by a JSON parse:
- str values are inserted as-is (the template supplies any quotes)
- bool values become true/false, numbers their literal form
- None becomes null

String values are not escaped, so a value containing a quote can break
the JSON; callers fall back to the default payload when that happens.
"""

import json
import time
from typing import Any

from wamanager.exceptions import TemplateRenderError
from wamanager.models import ProviderMessage

TEMPLATE_VARIABLES = (
    "device_id",
    "device_name",
    "device_phone",
    "message_id",
    "from",
    "to",
    "from_name",
    "message",
    "message_type",
    "timestamp",
    "is_group",
    "chat_name",
    "has_media",
    "is_forwarded",
    "is_status",
    "broadcast",
)


def build_template_variables(
    device_id: str,
    device: dict[str, Any],
    message: ProviderMessage,
) -> dict[str, Any]:
    """Variable set for one inbound message."""
    return {
        "device_id": device_id,
        "device_name": device.get("name"),
        "device_phone": device.get("phone_number") or "",
        "message_id": message.message_id,
        "from": message.from_address,
        "to": message.to_address,
        "from_name": message.sender_name,
        "message": message.body or "",
        "message_type": message.message_type,
        "timestamp": message.timestamp,
        "is_group": message.is_group,
        "chat_name": message.sender_name,
        "has_media": message.has_media,
        "is_forwarded": message.is_forwarded,
        "is_status": message.is_status,
        "broadcast": message.broadcast,
    }


def build_test_variables(device: dict[str, Any]) -> dict[str, Any]:
    """Sample variable set used by webhook test deliveries."""
    phone = device.get("phone_number")
    return {
        "device_id": device["id"],
        "device_name": device.get("name"),
        "device_phone": phone or "628123456789",
        "message_id": f"test-msg-{int(time.time() * 1000)}",
        "from": "628987654321@c.us",
        "to": phone or "628123456789@c.us",
        "from_name": "Test User",
        "message": "This is a test message from WhatsApp Manager",
        "message_type": "chat",
        "timestamp": int(time.time()),
        "is_group": False,
        "chat_name": "Test User",
        "has_media": False,
        "is_forwarded": False,
        "is_status": False,
        "broadcast": False,
    }


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return "null"


def substitute(template: str, variables: dict[str, Any]) -> str:
    """Replace every {{key}} of the variable set; unknown placeholders stay."""
    text = template
    for key, value in variables.items():
        text = text.replace("{{" + key + "}}", _to_text(value))
    return text


def render_template(template: str, variables: dict[str, Any]) -> Any:
    """Substitute variables, then parse the result as JSON.

    Raises:
        TemplateRenderError: If the substituted text is not valid JSON
    """
    text = substitute(template, variables)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise TemplateRenderError(str(e)) from e


def default_payload(
    device_id: str,
    device: dict[str, Any],
    message: ProviderMessage,
) -> dict[str, Any]:
    """Fixed-schema payload used without a template or when it fails."""
    return {
        "device_id": device_id,
        "device_name": device.get("name"),
        "from": message.from_address,
        "to": message.to_address,
        "message": message.body or "",
        "message_type": message.message_type,
        "timestamp": message.timestamp,
        "message_id": message.message_id,
        "from_name": message.sender_name,
    }
