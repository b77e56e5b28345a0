# src/beads_ops/cache/result_cache.py

from __future__ import annotations

"""
In-memory TTL cache for bd read paths.

Layout:
- one singleton slot for the "ready" list (get_list / put_list / invalidate_list)
- one detail map keyed by task id (get / put / invalidate)

The two never share keys: a task id is always a detail key, whatever its text.

An entry is served only while caching is enabled, it holds a payload, it has
been populated (fetched_at != 0) and it is younger than the TTL. Hits are
counted here; misses are counted by the caller (only the caller knows whether
it goes on to fetch).
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CacheScope(Enum):
    """Non-task invalidation targets. Not a str subclass: no task id equals a scope."""

    LIST = "list"
    ALL = "all"


@dataclass(slots=True)
class CacheEntry:
    payload: Any = None
    fetched_at: float = 0.0


class ResultCache:
    """
    Read-through cache placed in front of the bd invoker.

    Thread-safety:
    - read paths run in worker threads (asyncio.to_thread), so every public
      method takes the same lock
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 30.0,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = float(ttl_seconds)
        self._enabled = bool(enabled)
        self._clock = clock
        self._lock = threading.Lock()

        self._list = CacheEntry()
        self._detail: dict[str, CacheEntry] = {}

        self.hits = 0
        self.misses = 0

    # ---- config ----

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def ttl(self) -> float:
        return self._ttl

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = bool(enabled)
            if not self._enabled:
                self._clear_locked()
        logger.info("Result cache %s", "enabled" if enabled else "disabled (cleared)")

    def set_ttl(self, ttl_seconds: float) -> None:
        with self._lock:
            self._ttl = max(0.0, float(ttl_seconds))

    # ---- validity ----

    def _is_valid(self, entry: CacheEntry | None) -> bool:
        if entry is None or not self._enabled or entry.payload is None:
            return False
        if entry.fetched_at == 0:
            return False
        return (self._clock() - entry.fetched_at) < self._ttl

    def _hit(self, entry: CacheEntry | None) -> Any | None:
        if entry is None or not self._is_valid(entry):
            return None
        self.hits += 1
        return entry.payload

    def _entry(self, payload: Any) -> CacheEntry:
        return CacheEntry(payload=payload, fetched_at=self._clock())

    def is_valid(self, task_id: str | None = None) -> bool:
        """Validity of a detail entry, or of the list slot when task_id is None."""
        with self._lock:
            entry = self._list if task_id is None else self._detail.get(task_id)
            return self._is_valid(entry)

    # ---- list slot ----

    def get_list(self) -> Any | None:
        with self._lock:
            return self._hit(self._list)

    def put_list(self, payload: Any) -> None:
        with self._lock:
            if self._enabled and payload is not None:
                self._list = self._entry(payload)

    def invalidate_list(self) -> None:
        with self._lock:
            self._list = CacheEntry()
        logger.debug("Cache invalidated: list")

    # ---- detail map ----

    def get(self, task_id: str) -> Any | None:
        """Return the cached detail payload and count a hit, or None on a miss."""
        with self._lock:
            return self._hit(self._detail.get(task_id))

    def put(self, task_id: str, payload: Any) -> None:
        with self._lock:
            if self._enabled and payload is not None:
                self._detail[task_id] = self._entry(payload)

    def invalidate(self, target: CacheScope | str) -> None:
        """Drop the list slot, everything, or one task's detail entry."""
        if target is CacheScope.ALL:
            self.invalidate_all()
        elif target is CacheScope.LIST:
            self.invalidate_list()
        else:
            with self._lock:
                self._detail.pop(target, None)
            logger.debug("Cache invalidated: task %s", target)

    def invalidate_all(self) -> None:
        """Drop every entry; hit/miss counters survive."""
        with self._lock:
            self._list = CacheEntry()
            self._detail.clear()
        logger.debug("Cache invalidated: all")

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    # ---- reset ----

    def _clear_locked(self) -> None:
        self._list = CacheEntry()
        self._detail.clear()
        self.hits = 0
        self.misses = 0

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        with self._lock:
            self._clear_locked()

    # ---- stats ----

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            hit_rate = (self.hits / total) * 100 if total > 0 else 0.0
            return {
                "hits": self.hits,
                "misses": self.misses,
                "total": total,
                "hit_rate": hit_rate,
            }

    def format_stats(self) -> str:
        s = self.stats()
        return f"hits={s['hits']} misses={s['misses']} total={s['total']} hit_rate={s['hit_rate']:.1f}%"
