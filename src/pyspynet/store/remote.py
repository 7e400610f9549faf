"""Remote key-value tier over the ``kv/*`` HTTP protocol."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from pyspynet._constants import ERROR_BODY_SNIPPET, KV_NAMESPACE_HEADER
from pyspynet.config import RemoteStoreConfig
from pyspynet.exceptions import SpynetConfigError, StoreRemoteError

_logger = logging.getLogger(__name__)


class RemoteStore:
    """Key-value backend that issues one POST per operation.

    Every call suspends until the service answers; no timeout is added
    on top of the session's own. Any failure raises
    :class:`StoreRemoteError`.
    """

    def __init__(self, config: RemoteStoreConfig, http_session: aiohttp.ClientSession) -> None:
        if not config.is_configured:
            raise SpynetConfigError("Remote store needs endpoint, namespace and token")
        assert config.endpoint is not None and config.namespace is not None  # noqa: S101
        self._base = config.endpoint.strip().rstrip("/")
        self._headers: dict[str, str] = {
            "content-type": "application/json",
            KV_NAMESPACE_HEADER: config.namespace.strip(),
            "authorization": f"Bearer {str(config.token).strip()}",
        }
        self._http = http_session

    async def _post(self, operation: str, body: Mapping[str, Any]) -> dict[str, Any]:
        url = f"{self._base}/kv/{operation}"
        _logger.debug("POST %s", url)

        try:
            async with self._http.post(url, data=json.dumps(body), headers=self._headers) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    _logger.warning(
                        "Remote store %s failed: HTTP %s %s",
                        operation,
                        resp.status,
                        text[:ERROR_BODY_SNIPPET],
                    )
                    raise StoreRemoteError(
                        f"HTTP {resp.status} from kv/{operation}",
                        status_code=resp.status,
                        operation=operation,
                        body=text,
                    )
        except StoreRemoteError:
            raise
        except aiohttp.ClientError as exc:
            raise StoreRemoteError(f"kv/{operation} request failed: {exc}", operation=operation) from exc

        try:
            payload = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise StoreRemoteError(
                f"Invalid JSON from kv/{operation}: {text[:64]}",
                operation=operation,
                body=text,
            ) from exc

        if not isinstance(payload, dict):
            raise StoreRemoteError(f"Unexpected payload from kv/{operation}", operation=operation, body=text)
        return payload

    async def get(self, key: str) -> Any | None:
        if not key:
            return None
        payload = await self._post("get", {"key": key})
        return payload.get("value")

    async def set(self, key: str, value: Any) -> None:
        if not key:
            return
        await self._post("set", {"key": key, "value": value})

    async def delete(self, key: str) -> None:
        if not key:
            return
        await self._post("delete", {"key": key})

    async def list_keys(self, prefix: str) -> list[str]:
        payload = await self._post("list", {"prefix": prefix})
        keys = payload.get("keys") or []
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise StoreRemoteError("kv/list returned a non-string key list", operation="list")
        return keys
