"""In-process store with per-key expiry."""

import threading
import time
from typing import Any, Callable, Optional

DEFAULT_CLOCK: Callable[[], float] = time.monotonic


class MemoryStore:
    """Thread-safe dict store with TTLs.

    Suitable for a single process and for tests. ``atomic=False`` hides the
    native increment so callers exercise the read-modify-write path.

    Usage:
        store = MemoryStore()
        store.write("k", 1, ttl=60)
        store.increment("k", 2)  # -> 3
    """

    def __init__(self, clock: Callable[[], float] = DEFAULT_CLOCK, atomic: bool = True):
        self._clock = clock
        self._data: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self.supports_increment = atomic

    def _expires_at(self, ttl: Optional[float]) -> Optional[float]:
        return self._clock() + ttl if ttl else None

    def _live(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return False
        return True

    def read(self, key: str) -> Any:
        with self._lock:
            if not self._live(key):
                return None
            return self._data[key][0]

    def write(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        unless_exist: bool = False,
    ) -> bool:
        with self._lock:
            if unless_exist and self._live(key):
                return False
            self._data[key] = (value, self._expires_at(ttl))
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def increment(self, key: str, amount: float, ttl: Optional[float] = None) -> float:
        if not self.supports_increment:
            raise NotImplementedError("increment is disabled on this store")
        with self._lock:
            if self._live(key):
                value, expires_at = self._data[key]
                value = (value or 0) + amount
            else:
                value, expires_at = amount, self._expires_at(ttl)
            self._data[key] = (value, expires_at)
            return value

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until expiry, or None for keys without one."""
        with self._lock:
            if not self._live(key):
                return None
            expires_at = self._data[key][1]
            return None if expires_at is None else expires_at - self._clock()

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
