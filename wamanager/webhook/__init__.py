"""Webhook module - inbound message forwarding and auto-reply.

Provides:
- WebhookDispatcher: Record, forward, extract and reply
- render_template / default_payload: Payload construction
- extract_response_message: Reply extraction
"""

from wamanager.webhook.dispatcher import WebhookDispatcher, classify_delivery_error
from wamanager.webhook.extract import extract_response_message
from wamanager.webhook.template import (
    TEMPLATE_VARIABLES,
    build_template_variables,
    build_test_variables,
    default_payload,
    render_template,
)

__all__ = [
    "WebhookDispatcher",
    "classify_delivery_error",
    "extract_response_message",
    "TEMPLATE_VARIABLES",
    "build_template_variables",
    "build_test_variables",
    "default_payload",
    "render_template",
]
