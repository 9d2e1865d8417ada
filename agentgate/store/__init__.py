"""Key-value stores for spend counters and cached responses."""

from agentgate.store.base import CounterStore, build_key
from agentgate.store.counters import (
    AtomicCounter,
    Counter,
    ReadModifyWriteCounter,
    counter_for,
)
from agentgate.store.memory import MemoryStore

__all__ = [
    "AtomicCounter",
    "Counter",
    "CounterStore",
    "MemoryStore",
    "ReadModifyWriteCounter",
    "build_key",
    "counter_for",
]
