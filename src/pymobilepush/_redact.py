"""Redaction of registration and analytics bodies for DEBUG logs.

Bodies carry the device push token, the subscriber key and, on the wire,
the API access token; none of them may reach a log line.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Compared after lower-casing and dropping underscores, so ``device_Token``,
# ``deviceToken`` and ``devicetoken`` all match.
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "token",
        "devicetoken",
        "accesstoken",
        "authorization",
        "subscriberkey",
    }
)


def _is_sensitive(key: object) -> bool:
    return str(key).lower().replace("_", "") in _SENSITIVE_KEYS


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of a JSON-like *value* with sensitive fields masked."""
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if value is None or isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>" if _is_sensitive(key) else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (set, frozenset)):
        return sorted((redact_for_log(item, max_string=max_string) for item in value), key=str)
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    return repr(value)
