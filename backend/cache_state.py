"""Record-set cache keyed by (KLPD, tahun), TTL + optional LRU cap."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from constants import CACHE_MAX_ITEMS, CACHE_TTL_SECONDS


def cache_key(klpd: str, tahun: str) -> str:
    return f"{klpd}_{tahun}"


class RecordCache:
    """Thread-safe TTL cache for normalized record sets.

    Expired entries read as a miss through ``get`` but stay reachable via
    ``get_stale`` until deleted, overwritten or evicted, which is what the
    loader falls back to when an upstream fetch fails.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_items: int = CACHE_MAX_ITEMS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = float(ttl_seconds)
        self.max_items = int(max_items)
        self._clock = clock
        self._lock = threading.Lock()
        self._items: "OrderedDict[str, tuple[Any, float]]" = OrderedDict()  # key -> (value, expires_at)
        self._metrics = {"hits": 0, "misses": 0, "evictions": 0, "expired": 0}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                self._metrics["misses"] += 1
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                self._metrics["expired"] += 1
                self._metrics["misses"] += 1
                return None
            self._items.move_to_end(key)
            self._metrics["hits"] += 1
            return value

    def get_stale(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._items.get(key)
            return item[0] if item is not None else None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl_s = self.ttl_seconds if ttl is None else float(ttl)
        with self._lock:
            self._items[key] = (value, self._clock() + ttl_s)
            self._items.move_to_end(key)
            while self.max_items > 0 and len(self._items) > self.max_items:
                self._items.popitem(last=False)
                self._metrics["evictions"] += 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items.keys())

    def stats(self) -> dict:
        with self._lock:
            now = self._clock()
            live = sum(1 for _v, exp in self._items.values() if now < exp)
            return {
                "hits": self._metrics["hits"],
                "misses": self._metrics["misses"],
                "keys": live,
                "staleKeys": len(self._items) - live,
                "expired": self._metrics["expired"],
                "evictions": self._metrics["evictions"],
                "ttlSeconds": self.ttl_seconds,
                "maxItems": self.max_items,
            }
