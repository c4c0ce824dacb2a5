import threading
import time

import pytest

from npilookup.domain.models.common import CacheKey
from npilookup.infrastructure.cache.caching_service import SWEEPER_THREAD_NAME, TTLCacheStore


@pytest.fixture
def cache(fake_clock):
    return TTLCacheStore(enabled=True, clock=fake_clock)


def test_disabled_by_default():
    assert TTLCacheStore().enabled is False


def test_get_returns_value_within_ttl(cache, fake_clock):
    cache.put(CacheKey("1234567893"), "provider", ttl=300)
    fake_clock.advance(299)
    assert cache.get(CacheKey("1234567893")) == "provider"


def test_expired_entry_is_a_miss_but_stays_until_swept(cache, fake_clock):
    cache.put(CacheKey("1234567893"), "provider", ttl=300)
    fake_clock.advance(301)

    assert cache.get(CacheKey("1234567893")) is None
    assert CacheKey("1234567893") in cache

    assert cache.sweep() == 1
    assert CacheKey("1234567893") not in cache
    assert len(cache) == 0


def test_reads_do_not_extend_ttl(cache, fake_clock):
    cache.put(CacheKey("1234567893"), "provider", ttl=10)
    for _ in range(5):
        fake_clock.advance(2)
        cache.get(CacheKey("1234567893"))
    fake_clock.advance(1)
    assert cache.get(CacheKey("1234567893")) is None


def test_put_replaces_entry_and_restarts_ttl(cache, fake_clock):
    cache.put(CacheKey("1234567893"), "old", ttl=10)
    fake_clock.advance(8)
    cache.put(CacheKey("1234567893"), "new", ttl=10)
    fake_clock.advance(8)
    assert cache.get(CacheKey("1234567893")) == "new"


def test_sweep_keeps_fresh_entries(cache, fake_clock):
    cache.put(CacheKey("a"), 1, ttl=5)
    cache.put(CacheKey("b"), 2, ttl=50)
    fake_clock.advance(10)

    assert cache.sweep() == 1
    assert cache.get(CacheKey("b")) == 2
    assert len(cache) == 1


def test_disabled_cache_never_stores_or_locks(fake_clock, mocker):
    cache = TTLCacheStore(enabled=False, clock=fake_clock)
    lock = mocker.MagicMock()
    cache._lock = lock

    cache.put(CacheKey("1234567893"), "provider", ttl=300)
    assert cache.get(CacheKey("1234567893")) is None
    lock.__enter__.assert_not_called()


def test_disable_stops_serving_entries(cache):
    cache.put(CacheKey("a"), 1, ttl=60)
    cache.disable()
    assert cache.get(CacheKey("a")) is None
    cache.enable()
    assert cache.get(CacheKey("a")) == 1


def test_delete_and_clear(cache):
    cache.put(CacheKey("a"), 1, ttl=60)
    cache.put(CacheKey("b"), 2, ttl=60)
    cache.delete(CacheKey("a"))
    assert cache.get(CacheKey("a")) is None
    cache.clear()
    assert len(cache) == 0


def test_start_rejects_non_positive_interval(cache):
    with pytest.raises(ValueError):
        cache.start(0)


def test_sweeper_removes_expired_entries_in_background():
    cache = TTLCacheStore(enabled=True)
    cache.put(CacheKey("short"), 1, ttl=0.01)
    cache.put(CacheKey("long"), 2, ttl=60)

    cache.start(0.02)
    try:
        deadline = time.monotonic() + 2
        while CacheKey("short") in cache and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        cache.stop()

    assert CacheKey("short") not in cache
    assert cache.get(CacheKey("long")) == 2


def test_start_is_idempotent_and_stop_joins_thread(cache):
    cache.start(60)
    first = cache._sweeper
    cache.start(60)
    assert cache._sweeper is first
    assert first.name == SWEEPER_THREAD_NAME
    assert first.daemon
    assert cache.sweeping

    cache.stop()
    assert not first.is_alive()
    assert not cache.sweeping
    # A stopped sweeper can be started again.
    cache.start(60)
    assert cache.sweeping
    cache.stop()


def test_stop_without_start_is_a_no_op(cache):
    cache.stop()
    assert not cache.sweeping


def test_concurrent_access_is_safe(cache):
    def writer(prefix):
        for i in range(200):
            cache.put(CacheKey(f"{prefix}-{i}"), i, ttl=60)
            cache.get(CacheKey(f"{prefix}-{i}"))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(cache) == 8 * 200
