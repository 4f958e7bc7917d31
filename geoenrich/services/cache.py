import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geoenrich.cache")


class LookupCache:
    """
    Bounded LRU cache with per-entry TTL in front of the GeoIP reader.

    Failures returned by the compute function are cached like any other
    value. Concurrent misses on the same key wait on a per-key lock so the
    compute function runs once.
    """

    def __init__(self, max_entries: int = 10000, ttl_seconds: float = 300,
                 clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[Any, Optional[float]]]" = OrderedDict()
        self._lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def _lookup(self, key: Hashable):
        # caller holds self._lock
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return False, None
        self._entries.move_to_end(key)
        return True, value

    def _store(self, key: Hashable, value: Any):
        # caller holds self._lock
        expires_at = self._clock() + self.ttl_seconds if self.ttl_seconds > 0 else None
        self._entries[key] = (value, expires_at)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self.evictions += 1
            prometheus_metrics.increment_cache_evictions()
        prometheus_metrics.set_cache_size(len(self._entries))

    def get_or_compute(self, key: Hashable, compute_fn: Callable[[], Any]) -> Any:
        with self._lock:
            found, value = self._lookup(key)
            if found:
                self.hits += 1
                prometheus_metrics.increment_cache_hits()
                return value
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            # another caller may have filled the entry while we waited
            with self._lock:
                found, value = self._lookup(key)
                if found:
                    self.hits += 1
                    prometheus_metrics.increment_cache_hits()
                    return value
                self.misses += 1
            prometheus_metrics.increment_cache_misses()

            try:
                value = compute_fn()
                with self._lock:
                    self._store(key, value)
                return value
            finally:
                with self._lock:
                    if self._key_locks.get(key) is key_lock:
                        del self._key_locks[key]

    def clear(self):
        with self._lock:
            self._entries.clear()
            prometheus_metrics.set_cache_size(0)
        logger.info("GeoIP lookup cache cleared", extra={"component": "cache"})

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "size": len(self._entries),
                "maxsize": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hit_rate": self.hits / total if total > 0 else 0.0,
            }
