"""Client configuration for pyspynet."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from urllib.parse import urlparse

from pyspynet._constants import DEFAULT_API_BASE_URL, PERSIST_DEBOUNCE, RPC_PATH
from pyspynet.exceptions import SpynetConfigError


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def resolve_base_url(
    override: str | None = None,
    build_value: str | None = None,
    *,
    default: str | None = DEFAULT_API_BASE_URL,
) -> str:
    """Pick the RPC base URL.

    Resolution order is *override* (runtime), then *build_value*
    (build-time configuration), then *default*. Blank values are skipped.

    Raises
    ------
    SpynetConfigError
        If no candidate is usable or the winner is not an http(s) URL.
    """
    for candidate in (override, build_value, default):
        url = _clean(candidate)
        if url is None:
            continue
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise SpynetConfigError(f"RPC base URL must be an absolute http(s) URL, got {url!r}")
        return url.rstrip("/")
    raise SpynetConfigError("No RPC base URL configured")


@dataclasses.dataclass(frozen=True)
class RemoteStoreConfig:
    """Connection parameters for the remote key-value tier.

    The remote tier is only used when all three values are non-empty.

    Parameters
    ----------
    endpoint : str or None
        Base URL of the key-value service (``kv/*`` paths are appended).
    namespace : str or None
        Namespace sent in the ``x-rork-namespace`` header.
    token : str or None
        Bearer token for the ``authorization`` header.
    """

    endpoint: str | None = None
    namespace: str | None = None
    token: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(_clean(self.endpoint) and _clean(self.namespace) and _clean(self.token))

    @classmethod
    def from_env(cls, **overrides: Any) -> RemoteStoreConfig:
        """Read ``SPYNET_DB_ENDPOINT``, ``SPYNET_DB_NAMESPACE`` and ``SPYNET_DB_TOKEN``."""
        env = os.environ
        kwargs: dict[str, Any] = {
            "endpoint": env.get("SPYNET_DB_ENDPOINT"),
            "namespace": env.get("SPYNET_DB_NAMESPACE"),
            "token": env.get("SPYNET_DB_TOKEN"),
        }
        kwargs.update(overrides)
        return cls(**kwargs)


@dataclasses.dataclass(frozen=True)
class ClientConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        RPC service base URL. Defaults to the production endpoint.
    rpc_path : str
        Path of the batched RPC endpoint under *base_url*.
    max_batch_size : int or None
        Upper bound on calls per outgoing batch. ``None`` sends every call
        queued in one tick as a single request.
    remote_store : RemoteStoreConfig
        Remote key-value tier parameters.
    store_path : str or None
        JSON file backing the local key-value tier. ``None`` keeps the
        local tier purely in memory.
    persist_debounce : float
        Seconds between a local mutation and the file write it triggers.
    """

    base_url: str = DEFAULT_API_BASE_URL
    rpc_path: str = RPC_PATH
    max_batch_size: int | None = None
    remote_store: RemoteStoreConfig = dataclasses.field(default_factory=RemoteStoreConfig)
    store_path: str | None = None
    persist_debounce: float = PERSIST_DEBOUNCE

    def __post_init__(self) -> None:
        # Normalise once so every consumer sees the same URL.
        object.__setattr__(self, "base_url", resolve_base_url(self.base_url, default=None))
        if self.max_batch_size is not None and self.max_batch_size < 1:
            raise SpynetConfigError(f"max_batch_size must be positive, got {self.max_batch_size}")

    @property
    def rpc_url(self) -> str:
        return f"{self.base_url}/{self.rpc_path.strip('/')}"

    @classmethod
    def from_env(cls, *, base_url_override: str | None = None, **overrides: Any) -> ClientConfig:
        """Create configuration from environment variables.

        ``SPYNET_API_BASE_URL`` is the build-time base URL; an explicit
        *base_url_override* wins over it, and the production default is
        used when neither is set. ``SPYNET_STORE_PATH`` and
        ``SPYNET_MAX_BATCH_SIZE`` are optional. Remote store parameters
        come from :meth:`RemoteStoreConfig.from_env`.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {
            "base_url": resolve_base_url(base_url_override, env.get("SPYNET_API_BASE_URL")),
        }

        store_overrides = overrides.pop("remote_store", None)
        if isinstance(store_overrides, RemoteStoreConfig):
            config_kwargs["remote_store"] = store_overrides
        elif isinstance(store_overrides, dict):
            config_kwargs["remote_store"] = RemoteStoreConfig.from_env(**store_overrides)
        else:
            config_kwargs["remote_store"] = RemoteStoreConfig.from_env()

        store_path = _clean(env.get("SPYNET_STORE_PATH"))
        if store_path is not None:
            config_kwargs["store_path"] = store_path

        batch_env = env.get("SPYNET_MAX_BATCH_SIZE")
        if batch_env is not None and "max_batch_size" not in overrides:
            try:
                config_kwargs["max_batch_size"] = int(batch_env)
            except ValueError as exc:
                raise SpynetConfigError(f"SPYNET_MAX_BATCH_SIZE must be an integer, got {batch_env!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
