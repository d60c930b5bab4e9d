"""Key-value store used for memoizing computed results.

The admin service only needs string values with an expiry, so the store
interface is the small subset of a Redis client it actually calls.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol


class KeyValueStore(Protocol):
    """Async string store with per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process ``KeyValueStore``.

    Shared by every request handler of one process; concurrent writers
    simply overwrite each other.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
