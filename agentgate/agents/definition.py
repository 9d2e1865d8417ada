"""Immutable agent definitions.

An agent's configuration (model, caching, reliability, default request
parameters) is assembled once with AgentBuilder when the agent type is
registered. Inheritance is resolved at that point by copying the parent's
settings; nothing looks up a parent at call time.

Usage:
    base = AgentBuilder("BaseChat").model("gpt-4o").retries(max=2).build()

    summary = (
        AgentBuilder.inherit(base, "SummaryAgent")
        .version("2.0")
        .cache_for(3600, exclude=["trace_id"])
        .fallback_models("claude-sonnet")
        .build()
    )
"""

from typing import Any, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from agentgate.models import ExecutionType
from agentgate.resilience.retry import DEFAULT_RETRYABLE_PATTERNS, EXPONENTIAL

DEFAULT_CACHE_KEY_EXCLUDES = [
    "skip_cache",
    "dry_run",
    "stream",
    "tenant",
    "trace_id",
    "request_id",
    "with",
]


class CacheSettings(BaseModel):
    """Response caching for an agent.

    ``key_includes`` (when set) whitelists the parameters that feed the
    fingerprint; ``key_excludes`` removes parameters that never affect the
    output, such as tracing ids.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    ttl: int = Field(default=3600, gt=0)
    key_includes: Optional[list[str]] = None
    key_excludes: list[str] = Field(default_factory=lambda: list(DEFAULT_CACHE_KEY_EXCLUDES))


class BreakerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    errors: int = Field(default=10, ge=1)
    within: float = Field(default=60, gt=0)
    cooldown: float = Field(default=300, gt=0)


class ReliabilitySettings(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    max_retries: int = Field(default=0, ge=0)
    backoff: str = EXPONENTIAL
    base_delay: float = Field(default=0.4, ge=0)
    max_delay: float = Field(default=3.0, ge=0)
    retry_on: tuple[Type[BaseException], ...] = ()
    retryable_patterns: tuple[str, ...] = DEFAULT_RETRYABLE_PATTERNS
    fallback_models: tuple[str, ...] = ()
    total_timeout: Optional[float] = Field(default=None, gt=0)
    circuit_breaker: Optional[BreakerSettings] = None
    non_fallback_errors: tuple[Type[BaseException], ...] = ()

    @property
    def enabled(self) -> bool:
        return bool(
            self.max_retries > 0
            or self.fallback_models
            or self.circuit_breaker is not None
            or self.total_timeout
        )


class AgentDefinition(BaseModel):
    """Frozen configuration of a registered agent type."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    name: str
    version: str = "1.0"
    execution_type: ExecutionType = ExecutionType.CHAT
    model: str
    description: Optional[str] = None
    cache: CacheSettings = Field(default_factory=CacheSettings)
    reliability: ReliabilitySettings = Field(default_factory=ReliabilitySettings)
    parameters: dict[str, Any] = Field(default_factory=dict)

    @property
    def caches(self) -> bool:
        return self.cache.enabled


class AgentBuilder:
    """Fluent builder producing an AgentDefinition."""

    def __init__(self, name: str, execution_type: ExecutionType = ExecutionType.CHAT):
        self._name = name
        self._fields: dict[str, Any] = {"execution_type": ExecutionType(execution_type)}
        self._cache: dict[str, Any] = {}
        self._reliability: dict[str, Any] = {}
        self._parameters: dict[str, Any] = {}

    @classmethod
    def inherit(cls, parent: AgentDefinition, name: str) -> "AgentBuilder":
        """Start from a copy of ``parent``'s settings."""
        builder = cls(name, parent.execution_type)
        builder._fields.update(
            model=parent.model, version=parent.version, description=parent.description
        )
        builder._cache = parent.cache.model_dump()
        builder._reliability = parent.reliability.model_dump()
        builder._parameters = dict(parent.parameters)
        return builder

    def model(self, model_id: str) -> "AgentBuilder":
        self._fields["model"] = model_id
        return self

    def version(self, version: str) -> "AgentBuilder":
        self._fields["version"] = str(version)
        return self

    def description(self, text: str) -> "AgentBuilder":
        self._fields["description"] = text
        return self

    def cache_for(
        self,
        ttl: int,
        include: Optional[list[str]] = None,
        exclude: Optional[list[str]] = None,
    ) -> "AgentBuilder":
        self._cache["enabled"] = True
        self._cache["ttl"] = ttl
        if include is not None:
            self._cache["key_includes"] = list(include)
        if exclude is not None:
            excludes = list(self._cache.get("key_excludes") or DEFAULT_CACHE_KEY_EXCLUDES)
            self._cache["key_excludes"] = excludes + [k for k in exclude if k not in excludes]
        return self

    def no_cache(self) -> "AgentBuilder":
        self._cache["enabled"] = False
        return self

    def retries(
        self,
        max: int = 0,
        backoff: str = EXPONENTIAL,
        base: float = 0.4,
        max_delay: float = 3.0,
        on: tuple[Type[BaseException], ...] = (),
        patterns: Optional[tuple[str, ...]] = None,
    ) -> "AgentBuilder":
        self._reliability.update(
            max_retries=max,
            backoff=backoff,
            base_delay=base,
            max_delay=max_delay,
            retry_on=tuple(on),
        )
        if patterns is not None:
            self._reliability["retryable_patterns"] = tuple(patterns)
        return self

    def fallback_models(self, *models: str) -> "AgentBuilder":
        self._reliability["fallback_models"] = tuple(models)
        return self

    def total_timeout(self, seconds: float) -> "AgentBuilder":
        self._reliability["total_timeout"] = seconds
        return self

    def circuit_breaker(self, errors: int = 10, within: float = 60, cooldown: float = 300) -> "AgentBuilder":
        self._reliability["circuit_breaker"] = BreakerSettings(
            errors=errors, within=within, cooldown=cooldown
        )
        return self

    def non_fallback_errors(self, *errors: Type[BaseException]) -> "AgentBuilder":
        self._reliability["non_fallback_errors"] = tuple(errors)
        return self

    def parameters(self, **params: Any) -> "AgentBuilder":
        self._parameters.update(params)
        return self

    def build(self) -> AgentDefinition:
        return AgentDefinition(
            name=self._name,
            cache=CacheSettings(**self._cache),
            reliability=ReliabilitySettings(**self._reliability),
            parameters=dict(self._parameters),
            **self._fields,
        )
