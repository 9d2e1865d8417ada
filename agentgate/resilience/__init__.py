"""Resilience module for provider failures.

This module provides:
- RetryStrategy: retry eligibility and jittered backoff
- CircuitBreaker: sliding-window breaker per agent/model/tenant
- ReliabilityEngine: retries, model fallback chains and total timeout
- AttemptTracker: per-attempt timing, tokens and errors
"""

from agentgate.resilience.attempts import Attempt, AttemptTracker
from agentgate.resilience.circuit_breaker import (
    BreakerKey,
    BreakerRegistry,
    BreakerState,
    CircuitBreaker,
    breaker_key,
)
from agentgate.resilience.engine import DEFAULT_NON_FALLBACK_ERRORS, ReliabilityEngine, try_list
from agentgate.resilience.retry import (
    DEFAULT_RETRYABLE_ERRORS,
    DEFAULT_RETRYABLE_PATTERNS,
    RetryStrategy,
)

__all__ = [
    "Attempt",
    "AttemptTracker",
    "BreakerKey",
    "BreakerRegistry",
    "BreakerState",
    "CircuitBreaker",
    "DEFAULT_NON_FALLBACK_ERRORS",
    "DEFAULT_RETRYABLE_ERRORS",
    "DEFAULT_RETRYABLE_PATTERNS",
    "ReliabilityEngine",
    "RetryStrategy",
    "breaker_key",
    "try_list",
]
