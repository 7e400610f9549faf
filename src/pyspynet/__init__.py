"""pyspynet - Async session, routing and storage core for the spynetwork client."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyspynet")
except PackageNotFoundError:
    __version__ = "0+local"
from pyspynet._transport import CallKind, RpcTransport
from pyspynet.client import SpynetClient
from pyspynet.config import ClientConfig, RemoteStoreConfig, resolve_base_url
from pyspynet.credentials import AuthHeaderProvider, build_auth_headers
from pyspynet.exceptions import (
    RpcCallError,
    RpcError,
    RpcTransportError,
    SpynetConfigError,
    SpynetError,
    StoreError,
    StoreRemoteError,
)
from pyspynet.navigation import NavigationGuard, NavigationState, Redirect
from pyspynet.session import Session, SessionManager
from pyspynet.store.base import KeyValueStore, StoredRecord, get_all
from pyspynet.store.fallback import FallbackStore, build_store
from pyspynet.store.memory import MemoryStore
from pyspynet.store.remote import RemoteStore

__all__ = [
    "__version__",
    "AuthHeaderProvider",
    "CallKind",
    "ClientConfig",
    "FallbackStore",
    "KeyValueStore",
    "MemoryStore",
    "NavigationGuard",
    "NavigationState",
    "Redirect",
    "RemoteStore",
    "RemoteStoreConfig",
    "RpcCallError",
    "RpcError",
    "RpcTransport",
    "RpcTransportError",
    "Session",
    "SessionManager",
    "SpynetClient",
    "SpynetConfigError",
    "SpynetError",
    "StoreError",
    "StoreRemoteError",
    "StoredRecord",
    "build_auth_headers",
    "build_store",
    "get_all",
    "resolve_base_url",
]
