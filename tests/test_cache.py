import threading
import time

import pytest

from footycast.utils.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("mu", 1.5)

    clock.now = 9.9
    assert cache.get("mu") == 1.5
    clock.now = 10.0
    assert cache.get("mu") is None
    assert len(cache) == 0


def test_get_or_compute_recomputes_after_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    calls = []

    def compute():
        calls.append(clock.now)
        return len(calls)

    assert cache.get_or_compute("k", compute) == 1
    assert cache.get_or_compute("k", compute) == 1
    clock.now = 11
    assert cache.get_or_compute("k", compute) == 2
    assert calls == [0.0, 11]


def test_cached_none_is_a_hit():
    cache = TTLCache()
    calls = []

    def compute():
        calls.append(1)
        return None

    assert cache.get_or_compute("ref", compute) is None
    assert cache.get_or_compute("ref", compute) is None
    assert len(calls) == 1


def test_least_recently_used_entry_is_evicted():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=100, max_items=2, clock=clock)
    cache.set("a", 1)
    clock.now = 1
    cache.set("b", 2)
    clock.now = 2
    cache.get("a")
    clock.now = 3
    cache.set("c", 3)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_failed_compute_is_not_cached():
    cache = TTLCache()

    def boom():
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError):
        cache.get_or_compute("k", boom)
    assert cache.get_or_compute("k", lambda: "ok") == "ok"


def test_concurrent_misses_compute_once():
    cache = TTLCache()
    calls = []
    start = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def compute():
        calls.append(1)
        time.sleep(0.05)
        return "baseline"

    def worker():
        start.wait()
        value = cache.get_or_compute(("league_baseline", 39, 2024), compute)
        with lock:
            results.append(value)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert results == ["baseline"] * 8


def test_invalidate_and_clear():
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0
