"""Per-invocation state threaded through the middleware chain.

A Context is owned by exactly one call. It is created by the Executor,
mutated by middleware, and discarded once the Result is extracted. Output
and error are mutually exclusive: the terminal stage sets the output once,
or a failure sets the error.
"""

import time
from datetime import datetime
from typing import Any, Optional

from agentgate.agents.definition import AgentDefinition
from agentgate.budget.config import BudgetConfig
from agentgate.clock import Clock, utc_now
from agentgate.models import Result

_UNSET = object()


class Context:
    def __init__(
        self,
        agent: AgentDefinition,
        input: Any,
        model: Optional[str] = None,
        options: Optional[dict[str, Any]] = None,
        tenant: Any = None,
        skip_cache: bool = False,
        stream: bool = False,
        estimated_cost: float = 0.0,
        clock: Clock = utc_now,
    ):
        self.agent = agent
        self.input = input
        self.model = model or agent.model
        self.options = dict(options or {})
        self.tenant = tenant
        self.skip_cache = skip_cache
        self.stream = stream
        self.estimated_cost = estimated_cost
        self.clock = clock

        # Set by the tenant stage
        self.tenant_id: Optional[str] = None
        self.tenant_config: Optional[dict[str, Any]] = None
        self.tenant_object: Any = None

        # Set by the budget stage
        self.budget_config: Optional[BudgetConfig] = None

        # Set by the cache stage
        self.cache_key: Optional[str] = None
        self.cached = False

        # Set by the reliability stage
        self.attempt_model: Optional[str] = None
        self.model_used: Optional[str] = None
        self.attempts_made = 0
        self.attempts: list[dict[str, Any]] = []

        # Usage, set by the terminal stage
        self.input_tokens = 0
        self.output_tokens = 0
        self.input_cost = 0.0
        self.output_cost = 0.0
        self.total_cost = 0.0

        self.started_at: datetime = clock()
        self._started = time.monotonic()
        self.completed_at: Optional[datetime] = None
        self._duration_ms: Optional[int] = None

        self.metadata: dict[str, Any] = {}
        self._output: Any = _UNSET
        self.error: Optional[BaseException] = None

    @property
    def agent_type(self) -> str:
        return self.agent.name

    @property
    def agent_version(self) -> str:
        return self.agent.version

    @property
    def params(self) -> dict[str, Any]:
        """Agent default parameters overlaid with call options."""
        return {**self.agent.parameters, **self.options}

    @property
    def output(self) -> Optional[Result]:
        return None if self._output is _UNSET else self._output

    @property
    def has_output(self) -> bool:
        return self._output is not _UNSET

    def set_output(self, result: Result) -> None:
        if self.has_output:
            raise RuntimeError("Context output already set")
        if self.error is not None:
            raise RuntimeError("Cannot set output on a failed context")
        self._output = result

    def set_error(self, error: BaseException) -> None:
        if self.has_output:
            raise RuntimeError("Cannot set error on a context with output")
        self.error = error

    @property
    def success(self) -> bool:
        return self.has_output and self.error is None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def complete(self) -> None:
        """Stamp completion time once; later calls are no-ops."""
        if self.completed_at is None:
            self.completed_at = self.clock()
            self._duration_ms = int((time.monotonic() - self._started) * 1000)

    @property
    def duration_ms(self) -> Optional[int]:
        return self._duration_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_type": self.agent_type,
            "agent_version": self.agent_version,
            "model": self.model,
            "model_used": self.model_used,
            "tenant_id": self.tenant_id,
            "cached": self.cached,
            "skip_cache": self.skip_cache,
            "stream": self.stream,
            "attempts_made": self.attempts_made,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_cost": self.total_cost,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error_class": type(self.error).__name__ if self.error else None,
            "error_message": str(self.error) if self.error else None,
            "metadata": self.metadata,
        }
