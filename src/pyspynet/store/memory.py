"""In-process key-value tier with optional JSON file persistence."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pyspynet._constants import PERSIST_DEBOUNCE
from pyspynet.store.base import StoredRecord

_logger = logging.getLogger(__name__)


class MemoryStore:
    """Plain ``dict`` of :class:`StoredRecord` keyed by string.

    Safe without locks because every caller runs on one event loop.

    When *path* is given, :meth:`load` restores the mapping from that
    file and each mutation schedules a debounced rewrite of it. Write
    failures are logged and never reach the caller.
    """

    def __init__(
        self,
        *,
        path: str | Path | None = None,
        persist_debounce: float = PERSIST_DEBOUNCE,
    ) -> None:
        self._records: dict[str, StoredRecord] = {}
        self._path = Path(path) if path is not None else None
        self._persist_debounce = persist_debounce
        self._persist_handle: asyncio.TimerHandle | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def record(self, key: str) -> StoredRecord | None:
        """Return the raw record for *key* (value plus write time)."""
        return self._records.get(key)

    async def get(self, key: str) -> Any | None:
        if not key:
            return None
        rec = self._records.get(key)
        return rec.value if rec is not None else None

    async def set(self, key: str, value: Any) -> None:
        if not key:
            return
        self._records[key] = StoredRecord(value=value, updated_at=time.time())
        self._schedule_persist()

    async def delete(self, key: str) -> None:
        if not key:
            return
        self._records.pop(key, None)
        self._schedule_persist()

    async def list_keys(self, prefix: str) -> list[str]:
        return [key for key in self._records if key.startswith(prefix)]

    # ------------------------------------------------------------------
    # File persistence
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Populate the mapping from the backing file.

        A missing or unreadable file leaves the store empty. Returns the
        number of keys loaded.
        """
        if self._path is None or not self._path.exists():
            return 0
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _logger.warning("Loading store file %s failed, starting empty", self._path, exc_info=True)
            return 0
        if not isinstance(raw, dict):
            _logger.warning("Store file %s does not hold an object, starting empty", self._path)
            return 0

        loaded = 0
        for key, entry in raw.items():
            if not isinstance(entry, dict) or "value" not in entry:
                continue
            entry.setdefault("updated_at", time.time())
            try:
                self._records[key] = StoredRecord.model_validate(entry)
            except ValidationError:
                _logger.debug("Skipping malformed store entry %s", key)
                continue
            loaded += 1
        _logger.debug("Loaded %d keys from %s", loaded, self._path)
        return loaded

    def flush(self) -> None:
        """Write pending changes now instead of waiting for the debounce."""
        if self._persist_handle is not None:
            self._persist_handle.cancel()
            self._persist_handle = None
        self._persist_now()

    def _schedule_persist(self) -> None:
        if self._path is None or self._persist_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._persist_handle = loop.call_later(self._persist_debounce, self._on_persist_timer)

    def _on_persist_timer(self) -> None:
        self._persist_handle = None
        self._persist_now()

    def _persist_now(self) -> None:
        if self._path is None:
            return
        payload = {key: rec.model_dump() for key, rec in self._records.items()}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, separators=(",", ":")), encoding="utf-8")
        except (OSError, TypeError, ValueError):
            _logger.error("Persisting store to %s failed", self._path, exc_info=True)
