"""Redis-backed store for multi-process deployments."""

import json
import logging
from typing import Any, Optional, Union

import redis

from agentgate.config import REDIS_URL

logger = logging.getLogger(__name__)


def _ttl_seconds(ttl: Optional[float]) -> Optional[int]:
    return max(int(ttl), 1) if ttl else None


class RedisStore:
    """Store backed by a shared Redis instance.

    Values are JSON-encoded. Counters use INCRBYFLOAT, which Redis applies
    atomically, after an ``SET NX EX`` seed so the TTL is fixed when the key
    is first created and repeated increments never extend it.
    """

    supports_increment = True

    def __init__(self, client: Union[redis.Redis, str, None] = None):
        if client is None or isinstance(client, str):
            client = redis.Redis.from_url(client or REDIS_URL, decode_responses=True)
        self.client = client

    def read(self, key: str) -> Any:
        raw = self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    def write(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        unless_exist: bool = False,
    ) -> bool:
        written = self.client.set(
            key,
            json.dumps(value),
            ex=_ttl_seconds(ttl),
            nx=unless_exist,
        )
        return bool(written)

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(key))

    def increment(self, key: str, amount: float, ttl: Optional[float] = None) -> float:
        self.client.set(key, 0, ex=_ttl_seconds(ttl), nx=True)
        return float(self.client.incrbyfloat(key, amount))

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
