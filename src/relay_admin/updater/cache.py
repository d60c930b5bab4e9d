"""Time-bounded memoization of update verdicts."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from relay_admin.logging import get_logger
from relay_admin.store import KeyValueStore

log = get_logger("relay_admin.updater.cache")


@dataclass(frozen=True)
class CacheEntry:
    """A stored payload and the wall-clock time it was written."""

    payload: dict[str, Any]
    stored_at: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.stored_at)


class VerdictCache:
    """Memoize serialized verdicts with a freshness window.

    Entries stay in the backing store for ``retention_seconds`` so that a
    stale verdict is still available when upstream is unreachable;
    :meth:`is_fresh` decides whether an entry may be served normally.

    Every :meth:`invalidate` advances :attr:`generation`.  A writer that
    passes the generation it started from to :meth:`put` is refused if an
    invalidation happened in between, so a verdict computed before an
    update can never overwrite the invalidation.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 600,
        retention_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._retention = max(retention_seconds, ttl_seconds)
        self._clock = clock
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.age(self._clock()) < self._ttl

    async def get(self, key: str) -> CacheEntry | None:
        """Return the stored entry regardless of freshness.

        Unreadable or malformed entries count as a miss.
        """
        try:
            raw = await self._store.get(key)
        except Exception as exc:
            log.warning("verdict_cache_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return CacheEntry(payload=dict(data["payload"]), stored_at=float(data["stored_at"]))
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("verdict_cache_malformed", key=key, error=str(exc))
            return None

    async def put(
        self, key: str, payload: dict[str, Any], generation: int | None = None
    ) -> bool:
        """Store *payload* under *key*.

        Returns False without writing if *generation* is given and the cache
        was invalidated since.  Store errors are logged, not raised.
        """
        if generation is not None and generation != self._generation:
            log.info(
                "verdict_cache_write_superseded",
                key=key,
                started=generation,
                current=self._generation,
            )
            return False
        raw = json.dumps({"payload": payload, "stored_at": self._clock()})
        try:
            await self._store.set(key, raw, ttl_seconds=self._retention)
        except Exception as exc:
            log.warning("verdict_cache_write_failed", key=key, error=str(exc))
        return True

    async def invalidate(self, key: str) -> None:
        self._generation += 1
        try:
            await self._store.delete(key)
        except Exception as exc:
            log.warning("verdict_cache_invalidate_failed", key=key, error=str(exc))
        else:
            log.debug("verdict_cache_invalidated", key=key)
