"""Remote-then-local fallback policy."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp

from pyspynet.config import ClientConfig
from pyspynet.store.base import KeyValueStore
from pyspynet.store.memory import MemoryStore
from pyspynet.store.remote import RemoteStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackStore:
    """Run each operation on *primary*, retrying on *secondary* on any error.

    The fallback is per operation: a failed ``set`` lands in the secondary
    while the next ``get`` tries the primary again. The two tiers are
    never reconciled.
    """

    def __init__(self, primary: KeyValueStore, secondary: KeyValueStore) -> None:
        self.primary = primary
        self.secondary = secondary

    async def _run(
        self,
        operation: str,
        subject: str,
        call: Callable[[KeyValueStore], Awaitable[T]],
    ) -> T:
        try:
            return await call(self.primary)
        except Exception:
            _logger.warning(
                "Primary store failed on %s(%r), falling back to local",
                operation,
                subject,
                exc_info=True,
            )
        return await call(self.secondary)

    async def get(self, key: str) -> Any | None:
        if not key:
            return None
        return await self._run("get", key, lambda store: store.get(key))

    async def set(self, key: str, value: Any) -> None:
        if not key:
            return
        await self._run("set", key, lambda store: store.set(key, value))

    async def delete(self, key: str) -> None:
        if not key:
            return
        await self._run("delete", key, lambda store: store.delete(key))

    async def list_keys(self, prefix: str) -> list[str]:
        return await self._run("list_keys", prefix, lambda store: store.list_keys(prefix))


def build_store(
    config: ClientConfig,
    http_session: aiohttp.ClientSession,
    *,
    local: MemoryStore | None = None,
) -> KeyValueStore:
    """Assemble the store described by *config*.

    Returns the local tier alone when the remote tier is not configured.
    """
    if local is None:
        local = MemoryStore(path=config.store_path, persist_debounce=config.persist_debounce)
        local.load()
    if not config.remote_store.is_configured:
        _logger.debug("Remote store not configured, using local tier only")
        return local
    return FallbackStore(RemoteStore(config.remote_store, http_session), local)
