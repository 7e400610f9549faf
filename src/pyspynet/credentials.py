"""Map stored credentials to outgoing RPC headers."""

from __future__ import annotations

import asyncio
import logging

from pyspynet._constants import (
    ADMIN_AUTH_HEADER,
    ADMIN_TOKEN_KEY,
    USER_AUTH_HEADER,
    USER_PHONE_HEADER,
    USER_PHONE_KEY,
    USER_SESSION_TOKEN_KEY,
)
from pyspynet.store.base import KeyValueStore

_logger = logging.getLogger(__name__)


def _present(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


async def build_auth_headers(store: KeyValueStore) -> dict[str, str]:
    """Build auth headers from the credentials currently in *store*.

    The three reads run concurrently and all finish before headers are
    assembled. A verified session token wins over the phone hint; the
    admin token is added independently. Read failures yield ``{}``.
    """
    try:
        phone, session_token, admin_token = await asyncio.gather(
            store.get(USER_PHONE_KEY),
            store.get(USER_SESSION_TOKEN_KEY),
            store.get(ADMIN_TOKEN_KEY),
        )
    except Exception:
        _logger.warning("Failed to read auth credentials, sending request without auth", exc_info=True)
        return {}

    headers: dict[str, str] = {}
    session_token = _present(session_token)
    phone = _present(phone)
    admin_token = _present(admin_token)

    if session_token:
        headers[USER_AUTH_HEADER] = f"Bearer {session_token}"
    elif phone:
        headers[USER_PHONE_HEADER] = phone
    if admin_token:
        headers[ADMIN_AUTH_HEADER] = f"Bearer {admin_token}"
    return headers


class AuthHeaderProvider:
    """Zero-argument async callable returning fresh headers on every call."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def __call__(self) -> dict[str, str]:
        return await build_auth_headers(self._store)
