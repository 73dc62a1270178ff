"""Async Timeout Utilities.

Provides timeout wrappers for async operations with a project-specific
exception, so callers can tell a timeout apart from other failures.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

from wamanager.exceptions import WAManagerError

T = TypeVar("T")


class AsyncTimeoutError(WAManagerError):
    """Raised when an async operation times out."""

    def __init__(
        self,
        operation: str,
        timeout_s: float,
        details: dict | None = None,
    ) -> None:
        super().__init__(
            message=f"{operation} timed out after {timeout_s}s",
            details={
                "operation": operation,
                "timeout_s": timeout_s,
                **(details or {}),
            },
            recoverable=True,  # Caller can retry
        )
        self.operation = operation
        self.timeout_s = timeout_s


async def with_timeout(
    coro: Awaitable[T],
    timeout_s: float,
    operation: str = "operation",
    details: dict[str, Any] | None = None,
) -> T:
    """Execute a coroutine with a timeout.

    Simple wrapper around asyncio.wait_for with custom exception.

    Args:
        coro: Coroutine to execute
        timeout_s: Maximum time in seconds
        operation: Name of operation for error messages
        details: Extra context attached to the timeout error

    Returns:
        Result of the coroutine

    Raises:
        AsyncTimeoutError: If operation times out

    Example:
        await with_timeout(
            provider.teardown(),
            timeout_s=15.0,
            operation="provider teardown",
        )
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError:
        raise AsyncTimeoutError(operation, timeout_s, details)
