from __future__ import annotations

import time

from expense_categorizer.cache import (
    CacheSweeper,
    MerchantCache,
    get_default_cache,
    reset_default_cache,
)
from expense_categorizer.models import CacheStats


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_get_and_put_share_the_merchant_key() -> None:
    cache = MerchantCache(clock=FakeClock())
    cache.put("STARBUCKS #12 SEATTLE", "Food & Dining", 0.95)

    hit = cache.get("Starbucks Store 99")
    assert hit is not None
    assert (hit.category, hit.confidence) == ("Food & Dining", 0.95)
    assert "STARBUCKS RESERVE" in cache
    assert cache.get("PEET'S COFFEE") is None


def test_stats_track_hits_and_misses() -> None:
    cache = MerchantCache(clock=FakeClock())
    assert cache.stats().hit_rate == "0%"

    cache.put("NETFLIX.COM", "Entertainment", 0.95)
    cache.get("NETFLIX.COM")
    cache.get("NETFLIX.COM")
    cache.get("HULU")

    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (1, 2, 1)
    assert stats.hit_rate == "66.7%"


def test_last_write_wins() -> None:
    cache = MerchantCache(clock=FakeClock())
    cache.put("SHELL OIL 123", "Transportation", 0.95)
    cache.put("SHELL OIL 456", "Shopping", 0.85)

    assert cache.get("SHELL") == ("Shopping", 0.85)
    assert len(cache) == 1


def test_idle_entries_expire_but_hits_refresh_them() -> None:
    clock = FakeClock()
    cache = MerchantCache(ttl_seconds=3600, clock=clock)
    cache.put("NETFLIX.COM", "Entertainment", 0.95)
    cache.put("SPOTIFY USA", "Entertainment", 0.95)

    clock.now += 3000
    cache.get("NETFLIX.COM")  # refreshes last_used
    clock.now += 1000

    assert cache.evict_expired() == 1
    assert "NETFLIX.COM" in cache
    assert "SPOTIFY USA" not in cache

    clock.now += 3601
    assert cache.evict_expired() == 1
    assert len(cache) == 0


def test_entry_at_exactly_the_ttl_is_kept() -> None:
    clock = FakeClock()
    cache = MerchantCache(ttl_seconds=60, clock=clock)
    cache.put("HULU", "Entertainment", 0.95)
    clock.now += 60
    assert cache.evict_expired() == 0


def test_clear_resets_entries_and_counters() -> None:
    cache = MerchantCache(clock=FakeClock())
    cache.put("HULU", "Entertainment", 0.95)
    cache.get("HULU")
    cache.clear()

    assert cache.stats() == CacheStats(size=0, hits=0, misses=0, hit_rate="0%")


def test_sweeper_evicts_in_the_background() -> None:
    clock = FakeClock()
    cache = MerchantCache(ttl_seconds=10, clock=clock)
    cache.put("HULU", "Entertainment", 0.95)
    clock.now += 11

    with CacheSweeper(cache, interval_seconds=0.01) as sweeper:
        assert sweeper.running
        deadline = time.monotonic() + 2.0
        while len(cache) and time.monotonic() < deadline:
            time.sleep(0.01)
    assert len(cache) == 0
    assert not sweeper.running


def test_default_cache_is_shared_until_reset(monkeypatch) -> None:
    monkeypatch.setenv("EXPENSE_CATEGORIZER_CACHE_TTL", "120")
    reset_default_cache()

    first = get_default_cache()
    assert first is get_default_cache()
    assert first.ttl_seconds == 120.0

    reset_default_cache()
    assert get_default_cache() is not first
