"""Webhook Dispatch Pipeline.

Per inbound message:
1. Record the message and bump the received counter
2. Build the payload (body template, else the default payload)
3. POST it to the device's webhook (best-effort, never retried)
4. Optionally extract a reply from the response and send it back

Failures at any stage are contained here and logged; they never reach
the device's event loop.
"""

from __future__ import annotations

import socket
import time
from typing import Any, Awaitable, Callable

import httpx

from wamanager.config.constants import LIMITS
from wamanager.exceptions import (
    DeliveryFailure,
    TemplateRenderError,
    WebhookDeliveryError,
)
from wamanager.models import (
    DeliveryOutcome,
    MessageRecord,
    ProviderMessage,
    WebhookConfig,
    WebhookDeliveryResult,
)
from wamanager.observability.logging import WebhookLogger, get_logger
from wamanager.observability.metrics import (
    record_auto_reply,
    record_error,
    record_webhook_call,
)
from wamanager.store.database import SessionStore
from wamanager.webhook.extract import extract_response_message
from wamanager.webhook.template import (
    build_template_variables,
    build_test_variables,
    default_payload,
    render_template,
)

logger = get_logger(__name__)

ReplySender = Callable[[str, str, str], Awaitable[Any]]

_DNS_MARKERS = ("name or service not known", "nodename nor servname", "getaddrinfo", "no address associated")


def classify_delivery_error(error: BaseException) -> DeliveryFailure:
    """Map a transport exception (and its causes) to a failure kind."""
    if isinstance(error, httpx.TimeoutException):
        return DeliveryFailure.TIMEOUT

    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return DeliveryFailure.DNS
        if isinstance(current, ConnectionRefusedError):
            return DeliveryFailure.CONNECTION_REFUSED
        if isinstance(current, TimeoutError):
            return DeliveryFailure.TIMEOUT
        current = current.__cause__ or current.__context__

    if isinstance(error, httpx.ConnectError):
        text = str(error).lower()
        if any(marker in text for marker in _DNS_MARKERS):
            return DeliveryFailure.DNS
        return DeliveryFailure.CONNECTION_REFUSED

    return DeliveryFailure.OTHER


class WebhookDispatcher:
    """Forwards inbound messages to per-device webhooks.

    Usage:
        dispatcher = WebhookDispatcher(store)
        dispatcher.set_reply_sender(orchestrator.send_message)

        result = await dispatcher.handle_inbound("device-1", message)
        await dispatcher.aclose()
    """

    def __init__(
        self,
        store: SessionStore,
        timeout_s: float = LIMITS.WEBHOOK_TIMEOUT_S,
        user_agent: str = "WhatsApp-Manager/1.0",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._timeout_s = timeout_s
        self._user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._reply_sender: ReplySender | None = None

    def set_reply_sender(self, sender: ReplySender) -> None:
        """Set the coroutine used to send auto-replies (device_id, to, body)."""
        self._reply_sender = sender

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -------------------------------------------------------------------------
    # Inbound pipeline
    # -------------------------------------------------------------------------

    async def handle_inbound(
        self,
        device_id: str,
        message: ProviderMessage,
    ) -> WebhookDeliveryResult | None:
        """Run the pipeline for one inbound message.

        Returns:
            Delivery result, or None if the device has no active webhook
            or the message could not be processed
        """
        try:
            self._store.create_message(MessageRecord.incoming(device_id, message))
            self._store.increment_stat(device_id, "messages_received")

            device = self._store.find_device(device_id)
            if device is None:
                return None

            config = WebhookConfig.from_record(device)
            if not config.is_active:
                return None

            return await self._forward(device_id, device, config, message)
        except Exception as e:
            logger.error(
                "inbound_failed",
                device_id=device_id,
                message_id=message.message_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            record_error("webhook", type(e).__name__)
            return None

    def build_payload(
        self,
        device_id: str,
        device: dict[str, Any],
        config: WebhookConfig,
        message: ProviderMessage,
        log: WebhookLogger,
    ) -> tuple[Any, bool]:
        """Payload for a message and whether the body template produced it."""
        if config.body_template:
            variables = build_template_variables(device_id, device, message)
            try:
                payload = render_template(config.body_template, variables)
                log.payload_built(templated=True)
                return payload, True
            except TemplateRenderError as e:
                log.payload_fallback(e.message)

        log.payload_built(templated=False)
        return default_payload(device_id, device, message), False

    async def _forward(
        self,
        device_id: str,
        device: dict[str, Any],
        config: WebhookConfig,
        message: ProviderMessage,
    ) -> WebhookDeliveryResult:
        log = WebhookLogger(device_id, self._store)
        payload, templated = self.build_payload(device_id, device, config, message, log)

        start = time.perf_counter()
        try:
            response = await self.deliver(config.url, payload)
        except WebhookDeliveryError as e:
            elapsed_s = time.perf_counter() - start
            self._store.increment_stat(device_id, "webhook_calls")
            outcome = DeliveryOutcome.from_failure(e.kind)
            record_webhook_call(outcome.value, elapsed_s)
            log.failed(config.url, e.kind.value, e.message)
            return WebhookDeliveryResult(
                outcome=outcome,
                status_code=e.status_code,
                templated=templated,
                error=e.message,
            )

        elapsed_s = time.perf_counter() - start
        self._store.increment_stat(device_id, "webhook_calls")
        elapsed_ms = round(elapsed_s * 1000, 1)

        if not response.is_success:
            record_webhook_call(DeliveryOutcome.HTTP_ERROR.value, elapsed_s)
            log.non_success(config.url, response.status_code, elapsed_ms)
            return WebhookDeliveryResult(
                outcome=DeliveryOutcome.HTTP_ERROR,
                status_code=response.status_code,
                templated=templated,
            )

        record_webhook_call(DeliveryOutcome.SUCCESS.value, elapsed_s)
        log.delivered(config.url, response.status_code, elapsed_ms)
        result = WebhookDeliveryResult(
            outcome=DeliveryOutcome.SUCCESS,
            status_code=response.status_code,
            templated=templated,
        )

        if config.response_enabled and response.content:
            await self._auto_reply(device_id, config, message, response, result, log)

        return result

    async def _auto_reply(
        self,
        device_id: str,
        config: WebhookConfig,
        message: ProviderMessage,
        response: httpx.Response,
        result: WebhookDeliveryResult,
        log: WebhookLogger,
    ) -> None:
        try:
            data = response.json()
        except ValueError:
            data = None

        reply = extract_response_message(data, config.response_path)
        if not reply or not reply.strip():
            log.reply_missing()
            record_auto_reply("missing")
            return

        result.reply = reply
        if self._reply_sender is None:
            log.reply_failed("no reply sender configured")
            record_auto_reply("failed")
            return

        try:
            await self._reply_sender(device_id, message.from_address, reply)
        except Exception as e:
            log.reply_failed(str(e))
            record_auto_reply("failed")
            return

        result.reply_sent = True
        log.reply_sent(message.from_address, reply[:30])
        record_auto_reply("sent")

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def deliver(self, url: str, payload: Any) -> httpx.Response:
        """POST a JSON payload. Any status below 600 is returned, not raised.

        Raises:
            WebhookDeliveryError: Network-level failure or status >= 600
        """
        headers = {
            "Content-Type": LIMITS.WEBHOOK_CONTENT_TYPE,
            "User-Agent": self._user_agent,
        }
        try:
            response = await self._client.post(
                url, json=payload, headers=headers, timeout=self._timeout_s
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            kind = classify_delivery_error(e)
            raise WebhookDeliveryError(kind, str(e) or type(e).__name__, url=url) from e

        if response.status_code >= LIMITS.WEBHOOK_MAX_STATUS:
            raise WebhookDeliveryError(
                DeliveryFailure.HTTP_ERROR,
                f"unexpected status {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response

    async def test_webhook(
        self,
        device: dict[str, Any],
        url: str,
        body_template: str | None = None,
    ) -> dict[str, Any]:
        """Send a sample payload to a webhook URL.

        Returns:
            {"status", "request", "response"}

        Raises:
            TemplateRenderError: body_template is not valid JSON after substitution
            WebhookDeliveryError: Network failure or non-2xx status
        """
        log = WebhookLogger(device["id"], self._store)
        variables = build_test_variables(device)

        if body_template:
            try:
                payload = render_template(body_template, variables)
            except TemplateRenderError as e:
                log.test_delivery(url, "invalid_template", e.message)
                raise
        else:
            payload = variables

        try:
            response = await self.deliver(url, payload)
        except WebhookDeliveryError as e:
            log.test_delivery(url, "failed", e.message)
            raise

        if not response.is_success:
            log.test_delivery(url, "failed", f"{response.status_code} - {response.text}")
            raise WebhookDeliveryError(
                DeliveryFailure.HTTP_ERROR,
                f"webhook returned {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        log.test_delivery(url, "success", response.status_code)
        return {"status": response.status_code, "request": payload, "response": body}
