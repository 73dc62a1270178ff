"""Reply extraction from a webhook response body."""

from typing import Any

from wamanager.config.constants import LIMITS

_MISSING = object()


def _step(current: Any, segment: str) -> Any:
    """Descend one path segment: an object key or an in-range list index."""
    if isinstance(current, dict):
        return current.get(segment, _MISSING)

    if isinstance(current, list):
        # Canonical non-negative integers only ("0", "12"; not "-1" or "01")
        if not (segment.isascii() and segment.isdigit()) or str(int(segment)) != segment:
            return _MISSING
        index = int(segment)
        return current[index] if index < len(current) else _MISSING

    return _MISSING


def extract_response_message(data: Any, response_path: str | None = None) -> str | None:
    """Pull the auto-reply text out of a parsed response body.

    With a response_path ("data.reply", "choices.0.text"), every segment
    must name an existing key of the current object or an index of the
    current list; any miss means no reply. Without one, the first of
    reply/message/response/text holding a string wins.

    Returns:
        The reply string, or None when there is none
    """
    if not isinstance(data, dict):
        return None

    if not response_path or not response_path.strip():
        for name in LIMITS.RESPONSE_FIELDS:
            value = data.get(name)
            if isinstance(value, str):
                return value
        return None

    current: Any = data
    for segment in response_path.strip().split("."):
        current = _step(current, segment)
        if current is _MISSING:
            return None

    return current if isinstance(current, str) else None
