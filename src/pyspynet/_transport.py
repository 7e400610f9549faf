"""Batched RPC transport over HTTP.

Calls issued during one event-loop tick are queued and sent together as
one ``POST <url>/<path1>,<path2>?batch=1`` request on the next tick.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import aiohttp

from pyspynet._constants import ERROR_BODY_SNIPPET
from pyspynet._redact import redact_for_log
from pyspynet._serializer import Serializer, SuperJsonSerializer
from pyspynet.exceptions import RpcCallError, RpcTransportError

_logger = logging.getLogger(__name__)

HeadersProvider = Callable[[], Awaitable[Mapping[str, str]]]


class CallKind(StrEnum):
    QUERY = "query"
    MUTATION = "mutation"


@dataclass(slots=True)
class _PendingCall:
    path: str
    input: Any
    kind: CallKind
    future: asyncio.Future[Any]


def _error_from_item(error: Any, path: str) -> RpcCallError:
    if not isinstance(error, Mapping):
        return RpcCallError(f"RPC call {path} failed", path=path)
    data = error.get("data")
    data = dict(data) if isinstance(data, Mapping) else {}
    http_status = data.get("httpStatus")
    return RpcCallError(
        str(error.get("message") or f"RPC call {path} failed"),
        code=str(data.get("code") or error.get("code") or ""),
        http_status=http_status if isinstance(http_status, int) else None,
        path=str(data.get("path") or path),
        data=data,
    )


class RpcTransport:
    """Queue RPC calls and flush them as batched HTTP requests.

    Parameters
    ----------
    url : str
        Absolute URL of the batch endpoint (e.g. ``https://host/api/trpc``).
    http_session : aiohttp.ClientSession
        Session used for every request.
    headers : callable, optional
        Async provider evaluated once per outgoing request.
    serializer : Serializer, optional
        Envelope format for inputs and results. Defaults to superjson.
    max_batch_size : int, optional
        Split a tick's calls into requests of at most this many calls.
    """

    def __init__(
        self,
        url: str,
        http_session: aiohttp.ClientSession,
        *,
        headers: HeadersProvider | None = None,
        serializer: Serializer | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._http = http_session
        self._headers = headers
        self._serializer: Serializer = serializer or SuperJsonSerializer()
        self._max_batch_size = max_batch_size
        self._pending: list[_PendingCall] = []
        self._flush_handle: asyncio.Handle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def url(self) -> str:
        return self._url

    async def call(self, path: str, input: Any = None, *, kind: CallKind | str = CallKind.QUERY) -> Any:
        """Enqueue one call and wait for its result.

        Raises
        ------
        RpcCallError
            The server returned an error item for this call.
        RpcTransportError
            The batch request itself failed.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._pending.append(_PendingCall(path=path, input=input, kind=CallKind(kind), future=future))
        if self._flush_handle is None:
            self._flush_handle = loop.call_soon(self._flush)
        return await future

    async def query(self, path: str, input: Any = None) -> Any:
        return await self.call(path, input, kind=CallKind.QUERY)

    async def mutate(self, path: str, input: Any = None) -> Any:
        return await self.call(path, input, kind=CallKind.MUTATION)

    async def drain(self) -> None:
        """Wait for every in-flight batch request to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _flush(self) -> None:
        self._flush_handle = None
        pending, self._pending = self._pending, []

        for kind in CallKind:
            group = [c for c in pending if c.kind is kind and not c.future.done()]
            if not group:
                continue
            size = self._max_batch_size or len(group)
            for start in range(0, len(group), size):
                task = asyncio.ensure_future(self._dispatch(group[start : start + size]))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, batch: list[_PendingCall]) -> None:
        try:
            await self._send(batch)
        except Exception as exc:
            for call in batch:
                if not call.future.done():
                    call.future.set_exception(exc)

    async def _send(self, batch: list[_PendingCall]) -> None:
        url = f"{self._url}/{','.join(c.path for c in batch)}?batch=1"
        body = json.dumps({str(i): self._serializer.serialize(c.input) for i, c in enumerate(batch)})

        headers: dict[str, str] = {"content-type": "application/json"}
        if self._headers is not None:
            headers.update(await self._headers())

        _logger.debug("POST %s (%d calls) headers=%s", url, len(batch), redact_for_log(headers))

        try:
            async with self._http.post(url, data=body, headers=headers) as resp:
                status = resp.status
                reason = resp.reason
                text = await resp.text()
        except aiohttp.ClientError as exc:
            _logger.warning("RPC network error on %s: %s", url, exc)
            raise RpcTransportError(f"Request to {url} failed: {exc}", url=url) from exc

        ok = 200 <= status < 300
        if not ok:
            _logger.warning(
                "RPC HTTP error %s",
                {
                    "url": url,
                    "status": status,
                    "statusText": reason,
                    "bodySnippet": text[:ERROR_BODY_SNIPPET],
                },
            )

        try:
            items = json.loads(text)
        except json.JSONDecodeError as exc:
            if ok:
                message = f"Invalid JSON from {url}: {text[:64]}"
            else:
                message = f"HTTP {status} from {url}: {text[:ERROR_BODY_SNIPPET]}"
            raise RpcTransportError(message, status_code=status, url=url) from exc

        # A request-level failure comes back as one error object for the whole batch.
        if isinstance(items, Mapping) and "error" in items:
            items = [items] * len(batch)

        if not isinstance(items, list) or len(items) != len(batch):
            raise RpcTransportError(
                f"Batch response from {url} does not match {len(batch)} calls",
                status_code=status,
                url=url,
            )

        for call, item in zip(batch, items, strict=True):
            if call.future.done():
                continue
            try:
                call.future.set_result(self._resolve_item(call, item))
            except Exception as exc:
                call.future.set_exception(exc)

    def _resolve_item(self, call: _PendingCall, item: Any) -> Any:
        if not isinstance(item, Mapping):
            raise RpcTransportError(f"Malformed batch item for {call.path}", url=self._url)
        if "error" in item:
            error = item["error"]
            if isinstance(error, Mapping) and "json" in error:
                error = self._serializer.deserialize(error)
            raise _error_from_item(error, call.path)
        result = item.get("result")
        if not isinstance(result, Mapping):
            raise RpcTransportError(f"Malformed batch item for {call.path}", url=self._url)
        data = result.get("data")
        if data is None:
            return None
        return self._serializer.deserialize(data)
