import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """Simple in-memory TTL cache.

    Entries expire ``ttl_seconds`` after they were stored and are evicted
    lazily by the lookup that finds them stale. There is no size bound.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: Dict[Hashable, CacheEntry] = {}
        # Never held across an await, so lookups do not suspend the event loop
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            if self._clock() - entry.stored_at >= self.ttl_seconds:
                del self._store[key]
                return None

            return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store[key] = CacheEntry(value=value, stored_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        return len(self._store)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None
