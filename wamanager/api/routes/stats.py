"""Global statistics and recent log feed."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from wamanager.api.auth import verify_api_key
from wamanager.api.dependencies import get_store
from wamanager.config.constants import LIMITS
from wamanager.orchestrator.state_machine import LifecycleState
from wamanager.store.database import SessionStore

router = APIRouter(
    prefix="/api/stats",
    tags=["stats"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("")
async def global_stats(store: SessionStore = Depends(get_store)) -> dict[str, Any]:
    """Counters summed over all devices, plus the connected device count."""
    stats = store.get_global_stats()
    connected = sum(
        1
        for device in store.find_all_devices()
        if device["status"] == LifecycleState.CONNECTED.value
    )
    return {"success": True, "data": {**stats, "connected_devices": connected}}


@router.get("/logs")
async def recent_logs(
    limit: int = Query(LIMITS.DEFAULT_QUERY_LIMIT, ge=1, le=1000),
    store: SessionStore = Depends(get_store),
) -> dict[str, Any]:
    return {"success": True, "data": store.find_recent_logs(limit)}
