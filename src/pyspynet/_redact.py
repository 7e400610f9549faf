"""Helpers for safe debug logging.

pyspynet handles session tokens, admin tokens and phone numbers on every
request. This module redacts them before they reach DEBUG/WARNING logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "authorization",
        "cookie",
        "x-user-auth",
        "x-admin-auth",
        "user_session_token",
        "admin_auth_token",
        "sessiontoken",
        "admintoken",
    }
)

# Identity hints are masked rather than dropped so logs stay correlatable.
_MASKED_VALUE_KEYS: frozenset[str] = frozenset({"x-user-phone", "user_phone", "phone"})


def mask_phone(value: str) -> str:
    """Keep only the last four characters of a phone number."""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if lowered in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _MASKED_VALUE_KEYS and isinstance(v, str):
                redacted[key] = mask_phone(v)
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
