"""Tests for backend/cache_state.py: TTL expiry, stale reads and the LRU cap."""

from __future__ import annotations

import threading

from cache_state import RecordCache, cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_cache_key_format():
    assert cache_key("D197", "2025") == "D197_2025"


def test_set_then_get_returns_value():
    cache = RecordCache(ttl_seconds=3600, clock=FakeClock())
    rows = [{"kd_satker": 1}]
    cache.set("D197_2025", rows)
    assert cache.get("D197_2025") is rows


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = RecordCache(ttl_seconds=3600, clock=clock)
    cache.set("k", [1])
    clock.now += 3599
    assert cache.get("k") == [1]
    clock.now += 1
    assert cache.get("k") is None


def test_expired_entry_still_available_as_stale():
    clock = FakeClock()
    cache = RecordCache(ttl_seconds=10, clock=clock)
    cache.set("k", [1, 2])
    clock.now += 60
    assert cache.get("k") is None
    assert cache.get_stale("k") == [1, 2]


def test_per_entry_ttl_override():
    clock = FakeClock()
    cache = RecordCache(ttl_seconds=3600, clock=clock)
    cache.set("short", [1], ttl=5)
    clock.now += 6
    assert cache.get("short") is None


def test_delete_removes_stale_too():
    cache = RecordCache(clock=FakeClock())
    cache.set("k", [1])
    assert cache.delete("k") is True
    assert cache.get_stale("k") is None
    assert cache.delete("k") is False


def test_stats_counts_hits_misses_and_keys():
    clock = FakeClock()
    cache = RecordCache(ttl_seconds=10, clock=clock)
    cache.set("a", [])
    cache.set("b", [])
    cache.get("a")
    cache.get("missing")
    clock.now += 11
    cache.get("b")
    st = cache.stats()
    assert st["hits"] == 1
    assert st["misses"] == 2
    assert st["expired"] == 1
    assert st["keys"] == 0
    assert st["staleKeys"] == 2


def test_lru_cap_evicts_oldest():
    cache = RecordCache(max_items=2, clock=FakeClock())
    cache.set("a", [1])
    cache.set("b", [2])
    cache.get("a")  # a becomes most recent
    cache.set("c", [3])
    assert cache.keys() == ["a", "c"]
    assert cache.stats()["evictions"] == 1


def test_unbounded_by_default():
    cache = RecordCache(clock=FakeClock())
    for i in range(50):
        cache.set(f"k{i}", [i])
    assert len(cache.keys()) == 50


def test_concurrent_writes_and_reads():
    cache = RecordCache()
    errors = []

    def worker(n: int):
        try:
            for i in range(200):
                key = f"k{(n + i) % 7}"
                cache.set(key, [n, i])
                value = cache.get(key)
                assert value is None or len(value) == 2
        except Exception as exc:  # pragma: no cover - surfaced by the assert below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(cache.keys()) == 7
