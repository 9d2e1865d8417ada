"""Content-addressed response cache.

The fingerprint names everything that can change an agent's output:

    <ns>:cache:<execution_type>:<agent>:<version>:<model>:<sha256>

where the digest covers the primary input and the filtered request
parameters (voice, size, language, temperature, ...). Which parameters
count is explicit per agent: ``key_includes`` whitelists, ``key_excludes``
drops values such as tracing ids. Parameter order never matters.
"""

import hashlib
import json
from typing import Any, Mapping, Optional

from agentgate.agents.definition import AgentDefinition, CacheSettings
from agentgate.logging import get_logger
from agentgate.models import Result
from agentgate.store import CounterStore, build_key

logger = get_logger(__name__)


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def cache_parameters(params: Mapping[str, Any], settings: CacheSettings) -> dict[str, Any]:
    """Keep only the parameters that belong in the fingerprint."""
    if settings.key_includes is not None:
        selected = {k: v for k, v in params.items() if k in settings.key_includes}
    else:
        selected = dict(params)
    return {k: v for k, v in selected.items() if k not in settings.key_excludes}


def fingerprint(
    namespace: str,
    agent: AgentDefinition,
    model: str,
    params: Mapping[str, Any],
    input: Any,
) -> str:
    digest = hashlib.sha256(
        canonical_json({"input": input, "params": cache_parameters(params, agent.cache)}).encode("utf-8")
    ).hexdigest()
    return build_key(
        namespace,
        "cache",
        agent.execution_type.value,
        agent.name,
        agent.version,
        model,
        digest,
    )


class CacheLayer:
    """Reads and writes cached Results in the shared store.

    Store failures never fail a call: a read error is a miss and a write
    error is logged.
    """

    def __init__(self, store: CounterStore, namespace: str):
        self.store = store
        self.namespace = namespace

    def fingerprint(self, agent: AgentDefinition, model: str, params: Mapping[str, Any], input: Any) -> str:
        return fingerprint(self.namespace, agent, model, params, input)

    def lookup(self, key: str) -> Optional[Result]:
        try:
            data = self.store.read(key)
        except Exception as e:
            logger.error("cache_read_failed", key=key, error=str(e))
            return None

        if data is None:
            logger.debug("cache_miss", key=key)
            return None

        try:
            result = Result.model_validate(data)
        except ValueError as e:
            logger.warning("cache_entry_invalid", key=key, error=str(e))
            return None

        logger.debug("cache_hit", key=key)
        return result.model_copy(update={"cached": True})

    def store_result(self, key: str, result: Result, ttl: int) -> None:
        try:
            self.store.write(key, result.model_dump(mode="json"), ttl=ttl)
            logger.debug("cache_write", key=key, ttl=ttl)
        except Exception as e:
            logger.error("cache_write_failed", key=key, error=str(e))

    def invalidate(self, key: str) -> bool:
        return self.store.delete(key)
