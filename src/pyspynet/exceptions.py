"""Custom exception hierarchy for pyspynet."""

from __future__ import annotations


class SpynetError(Exception):
    """Base exception for all pyspynet errors."""


class SpynetConfigError(SpynetError):
    """Invalid or missing configuration."""


class StoreError(SpynetError):
    """Key-value store failure."""


class StoreRemoteError(StoreError):
    """Remote key-value tier failed (network, non-2xx, malformed payload).

    Never surfaced by :class:`~pyspynet.store.fallback.FallbackStore`; the
    operation is retried against the local tier instead.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        operation: str = "",
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.operation = operation
        self.body = body
        super().__init__(message)


class RpcError(SpynetError):
    """Base class for failures on the RPC transport."""


class RpcTransportError(RpcError):
    """HTTP-level failure (network, non-2xx without usable body, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class RpcCallError(RpcError):
    """The server answered a single call of a batch with an error item."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        http_status: int | None = None,
        path: str = "",
        data: dict | None = None,
    ) -> None:
        self.code = code
        self.http_status = http_status
        self.path = path
        self.data = data or {}
        super().__init__(message)
