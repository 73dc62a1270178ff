"""API Authentication - API key check for the admin endpoints.

- API key validation via X-API-Key header
- Skipped in development when no key is configured
- Never applied to health probes or the metrics scrape endpoint
"""

import secrets
from typing import Final

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from wamanager.config.settings import get_settings
from wamanager.observability.logging import get_logger

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

HEALTH_PATHS: Final[frozenset[str]] = frozenset({"/health", "/healthz", "/readyz"})
METRICS_PATHS: Final[frozenset[str]] = frozenset({"/metrics"})
PUBLIC_PATHS: Final[frozenset[str]] = HEALTH_PATHS | METRICS_PATHS


def is_public_path(path: str) -> bool:
    """Check if path is reachable without an API key.

    Example:
        >>> is_public_path("/healthz")
        True
        >>> is_public_path("/api/devices")
        False
    """
    return path in PUBLIC_PATHS


def _constant_time_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode(), b.encode())


async def verify_api_key(
    request: Request,
    api_key: str | None = Depends(api_key_header),
) -> None:
    """Verify API key from request header.

    Raises:
        HTTPException: 401 if authentication fails
    """
    settings = get_settings()

    if is_public_path(request.url.path):
        return

    if not settings.auth_enabled:
        return

    if settings.environment == "development" and not settings.api_key:
        logger.debug("auth_skipped", reason="development_no_key", path=request.url.path)
        return

    client_ip = request.client.host if request.client else "unknown"

    if not api_key:
        logger.warning(
            "auth_failed",
            reason="missing_api_key",
            path=request.url.path,
            client_ip=client_ip,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not _constant_time_compare(api_key, settings.api_key or ""):
        logger.warning(
            "auth_failed",
            reason="invalid_api_key",
            path=request.url.path,
            client_ip=client_ip,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )


def generate_api_key() -> str:
    """Generate a secure random API key (64 hex characters)."""
    return secrets.token_hex(32)
