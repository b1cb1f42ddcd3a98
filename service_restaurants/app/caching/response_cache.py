"""
Time-bounded in-memory response cache with pattern invalidation.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger


DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the instant after which it is stale."""

    key: str
    value: Any
    expires_at: float


class ResponseCache:
    """Keyed TTL cache shared by every request of the process.

    All operations take one coarse lock around the key space. Entries are
    never mutated in place; ``set`` swaps in a new ``CacheEntry``.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self.logger = get_logger("restaurants.response_cache")

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or ``None`` on a miss.

        An expired entry is evicted as part of the lookup.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() > entry.expires_at:
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Insert or replace the entry for ``key``.

        Entries that have already expired are swept first, so keys that are
        never read again do not accumulate.
        """
        now = self._clock()
        entry = CacheEntry(key=key, value=value, expires_at=now + self.ttl_seconds)
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.expires_at]
            for k in expired:
                del self._entries[k]
            self._evictions += len(expired)
            self._entries[key] = entry

    def invalidate_by_prefix(self, pattern: str) -> int:
        """Remove every entry whose key contains ``pattern``.

        Full scan of the key space; returns the number of removed entries.
        """
        with self._lock:
            doomed = [key for key in self._entries if pattern in key]
            for key in doomed:
                del self._entries[key]

        if doomed:
            self.logger.debug("Invalidated cache entries", pattern=pattern, keys_count=len(doomed))
        return len(doomed)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        """Snapshot of cache counters."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "ttl_seconds": self.ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
