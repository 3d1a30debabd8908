"""
Traffic Guard Reputation Cache

Bounded, per-key TTL memoization store with least-recently-used eviction.
Used to shield the rate-limited IP lookup service.

Recency is tracked by insertion order of an OrderedDict: a hit moves the
entry to the end, eviction pops from the front. A single lock guards the
structure since check-size / evict / insert is not atomic on its own.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with expiry bookkeeping. Never leaves the cache."""
    value: T
    expires_at: float
    last_accessed: float


class ReputationCache(Generic[T]):
    """
    Thread-safe LRU cache with per-entry expiry.

    Args:
        max_size: Maximum number of live entries
        default_ttl: TTL in seconds applied when set() gets none
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        max_size: int,
        default_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def get(self, key: str) -> Optional[T]:
        """Return the live value for key, promoting it to most recently used."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if now > entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None

            entry.last_accessed = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def has(self, key: str) -> bool:
        """Existence check. Does not promote and does not count as an access."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False

            if now > entry.expires_at:
                del self._entries[key]
                return False

            return True

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store value, evicting the least recently used entry when full."""
        ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache full, evicted {evicted}")

            self._entries[key] = CacheEntry(
                value=value,
                expires_at=now + ttl,
                last_accessed=now,
            )

    def delete(self, key: str) -> bool:
        """Invalidate a single key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.expires_at]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Cache cleanup evicted {len(expired)} entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Hit/miss counters, occupancy and hit rate."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._entries),
                "max_size": self.max_size,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }
