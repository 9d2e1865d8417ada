"""Counter implementations over a CounterStore.

Two strategies exist because not every store can increment atomically:

- AtomicCounter seeds the key with ``unless_exist`` (so the TTL is set only
  on creation) and then uses the store's native increment. Concurrent
  increments are serialized by the store.
- ReadModifyWriteCounter reads, adds and writes back. It is RACY: two
  concurrent increments of the same key can both read the old value and
  one update is lost. Only use it with stores lacking atomic increment.
"""

from typing import Optional

from agentgate.store.base import CounterStore


class Counter:
    """Increment a numeric key in a store."""

    def __init__(self, store: CounterStore):
        self.store = store

    def increment(self, key: str, amount: float, ttl: Optional[float] = None) -> float:
        raise NotImplementedError

    def read(self, key: str) -> float:
        value = self.store.read(key)
        return float(value) if value is not None else 0.0


class AtomicCounter(Counter):
    def increment(self, key: str, amount: float, ttl: Optional[float] = None) -> float:
        self.store.write(key, 0, ttl=ttl, unless_exist=True)
        return self.store.increment(key, amount)


class ReadModifyWriteCounter(Counter):
    def increment(self, key: str, amount: float, ttl: Optional[float] = None) -> float:
        if self.store.exists(key):
            current = self.read(key) + amount
            # Rewriting would reset expiry, so keep the key's original TTL
            # where the store can report it. A key reported without expiry
            # gets the period TTL.
            remaining = getattr(self.store, "ttl", lambda _k: ttl)(key)
            if remaining is None or remaining <= 0:
                remaining = ttl
            self.store.write(key, current, ttl=remaining)
            return current
        self.store.write(key, amount, ttl=ttl)
        return amount


def counter_for(store: CounterStore) -> Counter:
    """Pick the counter implementation the store can support."""
    if getattr(store, "supports_increment", False):
        return AtomicCounter(store)
    return ReadModifyWriteCounter(store)
