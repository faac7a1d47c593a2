"""Size-bounded, write-expiring in-memory caches keyed by product id."""

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from src.fetcher.circuit_breaker import Clock, MonotonicClock

V = TypeVar("V")

SIMILAR_IDS = "similar_ids"
PRODUCT_DETAILS = "product_details"
SIMILAR_PRODUCTS = "similar_products"


@dataclass
class CacheEntry(Generic[V]):
    """Cached value with its insertion time and lifetime."""
    value: V
    inserted_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


class TTLCache(Generic[V]):
    """
    LRU cache with expire-after-write semantics.

    Entries older than their TTL are invisible to readers even before they
    are physically removed. Once ``max_size`` entries are held, the least
    recently used entry is evicted on insert.
    """

    def __init__(self, ttl_seconds: float, max_size: int, clock: Optional[Clock] = None):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got: {ttl_seconds}")
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got: {max_size}")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.clock = clock or MonotonicClock()
        self._entries: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if not entry.is_fresh(self.clock.now()):
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def put(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=self.clock.now(),
                ttl=ttl if ttl is not None else self.ttl_seconds,
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def evict(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"size": len(self._entries), "hits": self.hits, "misses": self.misses}


class ResultCache:
    """
    Named collection of independent cache tiers.

    Each tier owns its TTL, size bound and lock, so traffic on one tier or
    key never blocks another.
    """

    def __init__(self, tiers: Optional[Dict[str, TTLCache]] = None):
        self._tiers: Dict[str, TTLCache] = dict(tiers or {})

    def add_tier(self, name: str, ttl_seconds: float, max_size: int,
                 clock: Optional[Clock] = None) -> TTLCache:
        tier = TTLCache(ttl_seconds=ttl_seconds, max_size=max_size, clock=clock)
        self._tiers[name] = tier
        return tier

    def tier(self, name: str) -> TTLCache:
        try:
            return self._tiers[name]
        except KeyError:
            raise KeyError(f"Unknown cache tier: {name}") from None

    def get(self, tier_name: str, key: str) -> Optional[Any]:
        return self.tier(tier_name).get(key)

    def put(self, tier_name: str, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self.tier(tier_name).put(key, value, ttl)

    def evict(self, tier_name: str, key: str) -> None:
        self.tier(tier_name).evict(key)

    def stats(self) -> Dict[str, Dict[str, int]]:
        return {name: tier.stats() for name, tier in self._tiers.items()}
