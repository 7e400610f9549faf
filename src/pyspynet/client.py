"""High-level async client for the spynetwork RPC service."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pyspynet._serializer import Serializer
from pyspynet._transport import RpcTransport
from pyspynet.config import ClientConfig
from pyspynet.credentials import AuthHeaderProvider
from pyspynet.exceptions import SpynetError
from pyspynet.session import Session, SessionManager
from pyspynet.store.base import KeyValueStore
from pyspynet.store.fallback import build_store
from pyspynet.store.memory import MemoryStore

_logger = logging.getLogger(__name__)


class SpynetClient:
    """Async client bundling storage, credentials and the RPC transport.

    Usage::

        async with SpynetClient(ClientConfig.from_env()) as client:
            await client.sessions.login_with_token(phone, token)
            profile = await client.query("appData.getMyData")
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        store: KeyValueStore | None = None,
        serializer: Serializer | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._external_store = store is not None
        self._store = store
        self._serializer = serializer
        self._transport: RpcTransport | None = None
        self._sessions: SessionManager | None = None
        self._local: MemoryStore | None = None

    @property
    def config(self) -> ClientConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SpynetClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._store is None:
            self._store = build_store(self._config, self._http_session, local=self._local)
        self._sessions = SessionManager(self._store)
        self._transport = RpcTransport(
            self._config.rpc_url,
            self._http_session,
            headers=AuthHeaderProvider(self._store),
            serializer=self._serializer,
            max_batch_size=self._config.max_batch_size,
        )
        _logger.debug("Client ready for %s", self._config.rpc_url)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._transport is not None:
            await self._transport.drain()
        local = self._local_tier()
        if local is not None:
            local.flush()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_store:
            # The remote tier is bound to the HTTP session; keep only the local tier.
            self._local = local
            self._store = None
        self._sessions = None
        self._transport = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> RpcTransport:
        if self._transport is None:
            raise SpynetError("Client not initialized. Use 'async with SpynetClient(...) as client:'")
        return self._transport

    def _local_tier(self) -> MemoryStore | None:
        store = self._store
        if isinstance(store, MemoryStore):
            return store
        secondary = getattr(store, "secondary", None)
        return secondary if isinstance(secondary, MemoryStore) else None

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            raise SpynetError("Client not initialized. Use 'async with SpynetClient(...) as client:'")
        return self._store

    @property
    def sessions(self) -> SessionManager:
        if self._sessions is None:
            raise SpynetError("Client not initialized. Use 'async with SpynetClient(...) as client:'")
        return self._sessions

    async def current_session(self) -> Session:
        return await self.sessions.load()

    async def query(self, path: str, input: Any = None) -> Any:
        """Run a read-only RPC procedure."""
        return await self._require_transport().query(path, input)

    async def mutate(self, path: str, input: Any = None) -> Any:
        """Run a state-changing RPC procedure."""
        return await self._require_transport().mutate(path, input)
