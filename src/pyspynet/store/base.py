"""Key-value store contract and stored record model."""

from __future__ import annotations

import time
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field


class StoredRecord(BaseModel):
    """A value held by the local tier along with its last write time."""

    model_config = ConfigDict(frozen=True)

    value: Any = None
    updated_at: float = Field(default_factory=time.time)


class KeyValueStore(Protocol):
    """Structural interface shared by every store backend.

    Keys live in one flat string namespace. ``get`` on a missing key
    returns ``None``; ``set`` and ``delete`` on an empty key do nothing.
    """

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def list_keys(self, prefix: str) -> list[str]:
        ...


async def get_all(store: KeyValueStore, prefix: str) -> dict[str, Any]:
    """Return every non-``None`` value whose key starts with *prefix*."""
    result: dict[str, Any] = {}
    for key in await store.list_keys(prefix):
        value = await store.get(key)
        if value is not None:
            result[key] = value
    return result
