"""Key-value store contract shared by spend counters and the response cache."""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class CounterStore(Protocol):
    """Cache-like store with TTL and optional atomic increment.

    ``supports_increment`` tells counter code whether ``increment`` is
    atomic on the backing store. When it is False callers fall back to
    read-modify-write (see ReadModifyWriteCounter).
    """

    supports_increment: bool

    def read(self, key: str) -> Any: ...

    def write(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        unless_exist: bool = False,
    ) -> bool: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def increment(self, key: str, amount: float, ttl: Optional[float] = None) -> float: ...


def build_key(namespace: str, *parts: object) -> str:
    """Join non-empty key parts with ':' under a namespace."""
    return ":".join(str(p) for p in (namespace, *parts) if p not in (None, ""))
