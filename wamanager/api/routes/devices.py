"""Device API Routes - Device management and messaging.

Provides REST endpoints for:
- Device CRUD and webhook configuration
- Session restart and pairing challenge (QR) lookup
- Sending messages and listing conversations
- Per-device messages, counters and logs
- Webhook test delivery

Responses use the {"success": bool, "data" | "message": ...} envelope.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator

from wamanager.api.auth import verify_api_key
from wamanager.api.dependencies import get_dispatcher, get_orchestrator, get_store
from wamanager.config.constants import LIMITS
from wamanager.exceptions import DeviceNotFoundError
from wamanager.orchestrator.manager import SessionOrchestrator
from wamanager.store.database import SessionStore
from wamanager.webhook.dispatcher import WebhookDispatcher

router = APIRouter(
    prefix="/api/devices",
    tags=["devices"],
    dependencies=[Depends(verify_api_key)],
)


def _validate_url(value: str | None) -> str | None:
    if value and not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


# Request models
class CreateDeviceRequest(BaseModel):
    """Request to register a device."""

    name: str = Field(..., min_length=1, description="Display name")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class UpdateDeviceRequest(BaseModel):
    """Partial update of a device's configuration."""

    name: str | None = Field(None, min_length=1)
    webhook_url: str | None = None
    webhook_enabled: bool | None = None
    webhook_response_enabled: bool | None = None
    webhook_body_template: str | None = None
    webhook_response_path: str | None = None

    @field_validator("webhook_url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        return _validate_url(value)

    @field_validator("webhook_response_path")
    @classmethod
    def _strip_path(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else None


class SendMessageRequest(BaseModel):
    """Outgoing text message."""

    to: str = Field(..., min_length=1, description="Bare number or full address")
    message: str = Field(..., min_length=1)

    @field_validator("to", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class WebhookTestRequest(BaseModel):
    """Webhook test delivery."""

    webhook_url: str = Field(..., min_length=1)
    body_template: str | None = None

    @field_validator("webhook_url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        return _validate_url(value)


def _require_device(store: SessionStore, device_id: str) -> dict[str, Any]:
    device = store.find_device(device_id)
    if device is None:
        raise DeviceNotFoundError(device_id)
    return device


# Endpoints
@router.get("")
async def list_devices(
    store: SessionStore = Depends(get_store),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """All devices with their liveness flag."""
    devices = [
        orchestrator.get_status(device["id"]) for device in store.find_all_devices()
    ]
    return {"success": True, "data": [d for d in devices if d is not None]}


@router.post("")
async def create_device(
    request: CreateDeviceRequest,
    store: SessionStore = Depends(get_store),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Register a device and start its session."""
    device_id = f"device-{uuid.uuid4()}"
    device = store.create_device(device_id, request.name)
    await orchestrator.create_session(device_id, request.name)
    return {"success": True, "data": device}


@router.get("/{device_id}")
async def get_device(
    device_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    device = orchestrator.get_status(device_id)
    if device is None:
        raise DeviceNotFoundError(device_id)
    return {"success": True, "data": device}


@router.put("/{device_id}")
async def update_device(
    device_id: str,
    request: UpdateDeviceRequest,
    store: SessionStore = Depends(get_store),
) -> dict[str, Any]:
    """Update name and/or webhook configuration."""
    _require_device(store, device_id)

    updates = request.model_dump(exclude_unset=True)
    if updates.get("name") is None:
        updates.pop("name", None)
    if updates:
        store.update_device(device_id, updates)

    return {"success": True, "data": store.find_device(device_id)}


@router.delete("/{device_id}")
async def delete_device(
    device_id: str,
    store: SessionStore = Depends(get_store),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    _require_device(store, device_id)
    await orchestrator.remove_device(device_id)
    store.delete_device(device_id)
    return {"success": True, "message": "Device deleted"}


@router.get("/{device_id}/qr")
async def get_qr(
    device_id: str,
    store: SessionStore = Depends(get_store),
) -> dict[str, Any]:
    """Raw pairing challenge payload and status."""
    device = _require_device(store, device_id)
    return {
        "success": True,
        "data": {"qr_code": device["qr_code"], "status": device["status"]},
    }


@router.post("/{device_id}/restart")
async def restart_device(
    device_id: str,
    store: SessionStore = Depends(get_store),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Manual restart; also clears the retry counter."""
    _require_device(store, device_id)
    await orchestrator.restart_session(device_id, reset_attempts=True)
    return {"success": True, "message": "Device restart initiated"}


@router.post("/{device_id}/send")
async def send_message(
    device_id: str,
    request: SendMessageRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    sent = await orchestrator.send_message(device_id, request.to, request.message)
    return {"success": True, "data": {"message_id": sent.id}}


@router.get("/{device_id}/chats")
async def list_chats(
    device_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    conversations = await orchestrator.list_conversations(device_id)
    return {"success": True, "data": [c.to_dict() for c in conversations]}


@router.get("/{device_id}/messages")
async def list_messages(
    device_id: str,
    limit: int = Query(LIMITS.DEFAULT_QUERY_LIMIT, ge=1, le=1000),
    store: SessionStore = Depends(get_store),
) -> dict[str, Any]:
    return {"success": True, "data": store.find_messages(device_id, limit)}


@router.get("/{device_id}/stats")
async def device_stats(
    device_id: str,
    store: SessionStore = Depends(get_store),
) -> dict[str, Any]:
    return {"success": True, "data": store.get_stats(device_id)}


@router.get("/{device_id}/logs")
async def device_logs(
    device_id: str,
    limit: int = Query(LIMITS.DEFAULT_QUERY_LIMIT, ge=1, le=1000),
    store: SessionStore = Depends(get_store),
) -> dict[str, Any]:
    return {"success": True, "data": store.find_device_logs(device_id, limit)}


@router.post("/{device_id}/test-webhook")
async def test_webhook(
    device_id: str,
    request: WebhookTestRequest,
    store: SessionStore = Depends(get_store),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """POST a sample payload to a webhook URL and report the exchange."""
    device = _require_device(store, device_id)
    result = await dispatcher.test_webhook(device, request.webhook_url, request.body_template)
    return {"success": True, "data": result}
