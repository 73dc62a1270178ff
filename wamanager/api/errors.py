"""Mapping of domain errors to HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from wamanager.exceptions import (
    DeviceNotFoundError,
    InitializationCancelledError,
    InitializationTimeoutError,
    RetryLimitExceededError,
    SendNotConnectedError,
    SessionAlreadyExistsError,
    TemplateRenderError,
    WAManagerError,
    WebhookDeliveryError,
)
from wamanager.observability.logging import get_logger

logger = get_logger(__name__)

# Most specific first
ERROR_STATUS: tuple[tuple[type[WAManagerError], int], ...] = (
    (DeviceNotFoundError, status.HTTP_404_NOT_FOUND),
    (SessionAlreadyExistsError, status.HTTP_409_CONFLICT),
    (SendNotConnectedError, status.HTTP_409_CONFLICT),
    (InitializationCancelledError, status.HTTP_409_CONFLICT),
    (RetryLimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (InitializationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (TemplateRenderError, status.HTTP_400_BAD_REQUEST),
    (WebhookDeliveryError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(exc: WAManagerError) -> int:
    """HTTP status code for a domain error."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain error handler and the catch-all handler."""

    @app.exception_handler(WAManagerError)
    async def domain_exception_handler(request: Request, exc: WAManagerError) -> JSONResponse:
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "request_failed",
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            error=exc.to_dict(),
        )
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "message": exc.message, "error": exc.to_dict()},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal server error"},
        )
