"""Agent definitions and registry."""

from agentgate.agents.definition import (
    DEFAULT_CACHE_KEY_EXCLUDES,
    AgentBuilder,
    AgentDefinition,
    BreakerSettings,
    CacheSettings,
    ReliabilitySettings,
)
from agentgate.agents.registry import AgentRegistry

__all__ = [
    "DEFAULT_CACHE_KEY_EXCLUDES",
    "AgentBuilder",
    "AgentDefinition",
    "AgentRegistry",
    "BreakerSettings",
    "CacheSettings",
    "ReliabilitySettings",
]
