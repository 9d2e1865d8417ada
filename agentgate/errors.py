"""Exception hierarchy for agent invocations.

Every error raised by the pipeline derives from AgentGateError so callers
can catch the whole family, while the concrete types stay distinct:

- ValidationError: bad input or tenant shape. Never retried, never falls back.
- BudgetExceededError: hard budget breach, raised before any provider call.
- ProviderError: failure reported by a provider client. Subclasses mark the
  retryable kinds (rate limit, timeout, 5xx, overloaded).
- CircuitOpenError / TotalTimeoutError / AllModelsExhaustedError: raised by
  the reliability engine.
- StorageError: execution history write failure. Logged, never surfaced.
"""

from typing import Optional


class AgentGateError(Exception):
    """Base class for all agentgate errors."""


class ConfigurationError(AgentGateError):
    """Raised when engine, agent or budget configuration is invalid."""


class ValidationError(AgentGateError):
    """Raised for malformed input. Never retried or routed to a fallback."""


class TenantResolutionError(ValidationError, TypeError):
    """Raised when a tenant argument has an unsupported shape."""

    def __init__(self, value: object):
        super().__init__(
            f"tenant must be None, a string/int id, a mapping with 'id', "
            f"or an object exposing llm_tenant_id; got {type(value).__name__}"
        )
        self.value = value


class BudgetExceededError(AgentGateError):
    """Raised when a hard budget limit has been reached."""

    def __init__(
        self,
        scope: str,
        limit: float,
        current: float,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"Budget exceeded for {scope}: {current:.6g} >= limit {limit:.6g}"
            if tenant_id:
                message += f" (tenant {tenant_id})"
        super().__init__(message)
        self.scope = scope
        self.limit = limit
        self.current = current
        self.agent_type = agent_type
        self.tenant_id = tenant_id


class ProviderError(AgentGateError):
    """Error reported by a provider client.

    ``retryable`` overrides type-based classification when set: True forces
    a retry, False forbids one.
    """

    def __init__(
        self,
        message: str,
        model_id: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.model_id = model_id
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after  # Hint from server (e.g., rate limit)


class RateLimitError(ProviderError):
    """Provider rejected the call with HTTP 429 / rate limit."""


class ProviderTimeoutError(ProviderError):
    """Provider request timed out."""


class ServerError(ProviderError):
    """Provider returned a 5xx response."""


class OverloadedError(ProviderError):
    """Provider reported it is over capacity."""


class ReliabilityError(AgentGateError):
    """Base class for errors produced by the reliability engine."""


class CircuitOpenError(ReliabilityError):
    """Raised when a circuit breaker denies a request."""

    def __init__(self, agent_type: str, model_id: str):
        super().__init__(f"Circuit breaker is open for {agent_type} on {model_id}")
        self.agent_type = agent_type
        self.model_id = model_id


class TotalTimeoutError(ReliabilityError, TimeoutError):
    """Raised when the retry/fallback sequence exceeds its wall-clock budget."""

    def __init__(self, timeout: float, elapsed: float):
        super().__init__(
            f"Total timeout of {timeout}s exceeded after {elapsed:.2f}s"
        )
        self.timeout = timeout
        self.elapsed = elapsed


class AllModelsExhaustedError(ReliabilityError):
    """Raised when no model in the try-list could even be attempted."""

    def __init__(
        self,
        models_tried: list[str],
        last_error: Optional[BaseException] = None,
        attempts: Optional[list[dict]] = None,
    ):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"All models exhausted ({', '.join(models_tried)}){detail}")
        self.models_tried = models_tried
        self.last_error = last_error
        self.attempts = attempts or []


class StorageError(AgentGateError):
    """Raised by execution storage when a record cannot be written."""
