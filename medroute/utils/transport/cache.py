"""
Thread-safe TTL cache for travel estimates.

Entries expire lazily on lookup; sweep() evicts all expired entries at once.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """
    Key -> value store with a fixed time-to-live.

    The lock is held only for dictionary access, never while computing values.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._expired(entry, now):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        entry = CacheEntry(value=value, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry

    def sweep(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if self._expired(e, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired travel cache entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 2) if total else 0.0,
                "ttl_seconds": self.ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
