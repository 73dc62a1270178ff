"""Health check endpoints.

- /healthz: Liveness probe (is the process alive?)
- /readyz: Readiness probe (store open, orchestrator running)
- /health: Combined view with session counts
- /metrics: Prometheus metrics endpoint
"""

from typing import Any

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from wamanager.api.dependencies import find_orchestrator
from wamanager.config.settings import get_settings

router = APIRouter(tags=["health"])


# Health status tracking
_ready: bool = False
_components: dict[str, bool] = {
    "store": False,
    "orchestrator": False,
    "dispatcher": False,
}


def set_ready(ready: bool) -> None:
    """Set overall readiness status."""
    global _ready
    _ready = ready


def set_component_health(component: str, healthy: bool) -> None:
    """Set health status for a specific component."""
    if component in _components:
        _components[component] = healthy


def get_component_health() -> dict[str, bool]:
    return _components.copy()


def _session_counts() -> dict[str, int]:
    orchestrator = find_orchestrator()
    if orchestrator is None:
        return {}
    return {"active": orchestrator.active_count}


def _is_ready() -> bool:
    return _ready and all(_components.values())


@router.get("/healthz", response_model=dict[str, str])
async def healthz() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/readyz")
async def readyz(response: Response) -> dict[str, Any]:
    """Readiness probe. 503 until every component is up."""
    if _is_ready():
        return {"status": "ready", "components": _components}

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "components": _components}


@router.get("/health")
async def health(response: Response) -> dict[str, Any]:
    """Combined liveness and readiness information."""
    ready = _is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if ready else "degraded",
        "ready": _ready,
        "components": _components,
        "sessions": _session_counts(),
    }


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition format."""
    if not get_settings().metrics_enabled:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
