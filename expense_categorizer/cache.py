"""In-process merchant -> category memo.

The cache avoids asking the classifier about a merchant it has already seen.
Entries are keyed by the coarse, first-word merchant key
(:func:`expense_categorizer.merchants.cache_key`), so ``"STARBUCKS #12"`` and
``"STARBUCKS STORE 99"`` share one entry.

- ``get`` on a hit bumps the entry's ``hit_count`` and ``last_used`` and the
  global hit counter; a miss bumps the global miss counter.
- ``put`` writes or overwrites an entry (last write wins).
- ``evict_expired`` drops entries idle for longer than the TTL (one hour by
  default). A :class:`CacheSweeper` calls it on a background thread; the host
  process owns the sweeper's lifetime, the categorization path never does.

Nothing here is persisted. There is no locking: lookups and inserts are single
dict operations and the sweep iterates over a snapshot of the entries, so the
worst outcome of interleaving is a redundant classifier call.

The clock is injectable (any zero-argument callable returning seconds), which
lets tests drive expiry deterministically.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

from .config import DEFAULT_CACHE_TTL_SECONDS, DEFAULT_SWEEP_INTERVAL_SECONDS, load_settings
from .logging_setup import get_logger
from .merchants import cache_key
from .models import CacheStats

_logger = get_logger("expense_categorizer.cache")

type Clock = Callable[[], float]


@dataclass(slots=True)
class CachedMerchant:
    category: str
    confidence: float
    hit_count: int
    last_used: float


class CacheHit(NamedTuple):
    category: str
    confidence: float


class MerchantCache:
    """Time-bounded merchant cache with hit/miss accounting."""

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CachedMerchant] = {}
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, description: object) -> bool:
        return isinstance(description, str) and cache_key(description) in self._entries

    def get(self, description: str) -> CacheHit | None:
        entry = self._entries.get(cache_key(description))
        if entry is None:
            self._misses += 1
            return None
        entry.hit_count += 1
        entry.last_used = self._clock()
        self._hits += 1
        return CacheHit(entry.category, entry.confidence)

    def put(self, description: str, category: str, confidence: float) -> None:
        self._entries[cache_key(description)] = CachedMerchant(
            category=category,
            confidence=confidence,
            hit_count=1,
            last_used=self._clock(),
        )

    def evict_expired(self) -> int:
        """Remove entries idle for more than the TTL; return how many were removed."""

        cutoff = self._clock() - self._ttl
        evicted = 0
        for key, entry in list(self._entries.items()):
            if entry.last_used < cutoff:
                self._entries.pop(key, None)
                evicted += 1
        if evicted:
            _logger.debug("merchant_cache:evicted count=%d remaining=%d", evicted, len(self))
        return evicted

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        hit_rate = f"{self._hits / total * 100:.1f}%" if total else "0%"
        return CacheStats(
            size=len(self._entries), hits=self._hits, misses=self._misses, hit_rate=hit_rate
        )

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0


class CacheSweeper:
    """Background thread that periodically evicts idle cache entries.

    Usable as a context manager::

        with CacheSweeper(cache, interval_seconds=600):
            serve()
    """

    def __init__(
        self,
        cache: MerchantCache,
        *,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._cache = cache
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="merchant-cache-sweeper", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._cache.evict_expired()
            except Exception as e:  # noqa: BLE001
                _logger.error("merchant_cache:sweep_failed error=%s", e.__class__.__name__)

    def __enter__(self) -> CacheSweeper:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


# ---- Process-wide default ---------------------------------------------------

_default_cache: MerchantCache | None = None


def get_default_cache() -> MerchantCache:
    """Return the process-wide cache, creating it on first use."""

    global _default_cache
    if _default_cache is None:
        _default_cache = MerchantCache(ttl_seconds=load_settings().cache_ttl_seconds)
    return _default_cache


def reset_default_cache() -> None:
    """Forget the process-wide cache (tests and host restarts)."""

    global _default_cache
    _default_cache = None


__all__ = [
    "CacheHit",
    "CacheSweeper",
    "CachedMerchant",
    "MerchantCache",
    "get_default_cache",
    "reset_default_cache",
]
