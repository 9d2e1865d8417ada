"""Retry, fallback, circuit breaking and total timeout for one invocation.

Usage:
    engine = ReliabilityEngine(
        RetryStrategy(max_retries=2),
        total_timeout=30,
        breaker=CircuitBreaker(errors=5, within=60, cooldown=120),
    )

    response, model_used = await engine.invoke(
        "gpt-4o", ["claude-sonnet"], lambda model: client.invoke(model, request),
        agent_type="SummaryAgent",
    )
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Type, TypeVar

from agentgate.errors import (
    AllModelsExhaustedError,
    BudgetExceededError,
    CircuitOpenError,
    TotalTimeoutError,
    ValidationError,
)
from agentgate.resilience.attempts import AttemptTracker
from agentgate.resilience.circuit_breaker import BreakerState, CircuitBreaker, breaker_key
from agentgate.resilience.retry import RetryStrategy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean the request itself is wrong; another model won't help
DEFAULT_NON_FALLBACK_ERRORS: tuple[Type[BaseException], ...] = (
    ValidationError,
    BudgetExceededError,
    TypeError,
    NotImplementedError,
)


def try_list(primary_model: str, fallback_models: Iterable[str]) -> list[str]:
    """Primary first, then fallbacks, without duplicates."""
    models: list[str] = []
    for model in [primary_model, *fallback_models]:
        if model and model not in models:
            models.append(model)
    return models


class ReliabilityEngine:
    """Runs a request across a model try-list.

    For each model: up to ``1 + max_retries`` attempts, retrying only
    retryable errors with backoff between attempts. A non-retryable error
    or exhausted retries moves on to the next model. Errors listed as
    non-fallback propagate at once. A model whose breaker is open is
    skipped without a request.

    ``total_timeout`` is checked between attempts and before each sleep;
    an in-flight request is never cancelled by this layer.
    """

    def __init__(
        self,
        strategy: Optional[RetryStrategy] = None,
        total_timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None,
        non_fallback_errors: Sequence[Type[BaseException]] = (),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.strategy = strategy or RetryStrategy()
        self.total_timeout = total_timeout
        self.breaker = breaker
        self.non_fallback_errors = DEFAULT_NON_FALLBACK_ERRORS + tuple(non_fallback_errors)
        self.sleep = sleep
        self.clock = clock

    def _check_deadline(self, started: float, upcoming_delay: float = 0.0, cause: Optional[BaseException] = None) -> None:
        if not self.total_timeout:
            return
        elapsed = self.clock() - started
        if elapsed + upcoming_delay > self.total_timeout:
            raise TotalTimeoutError(self.total_timeout, elapsed) from cause

    def _record_failure(self, key) -> None:
        if self.breaker is not None:
            self.breaker.record_failure(key)

    def _allowed(self, key, tracker: AttemptTracker) -> bool:
        if self.breaker is None or self.breaker.allow_request(key):
            return True
        tracker.record_short_circuit(key.model_id)
        logger.warning(f"Circuit open, skipping {key.model_id} for {key.agent_type}")
        return False

    async def invoke(
        self,
        primary_model: str,
        fallback_models: Iterable[str],
        request_fn: Callable[[str], Awaitable[T]],
        agent_type: str,
        tenant_id: Optional[str] = None,
        tracker: Optional[AttemptTracker] = None,
    ) -> tuple[T, str]:
        """Invoke ``request_fn(model)`` until a model succeeds.

        Returns:
            (response, model_used)

        Raises:
            The last provider error when every model failed,
            TotalTimeoutError when the wall-clock budget ran out,
            AllModelsExhaustedError when every model was skipped by an open breaker.
        """
        tracker = tracker if tracker is not None else AttemptTracker()
        models = try_list(primary_model, fallback_models)
        started = self.clock()
        last_error: Optional[BaseException] = None

        for index, model in enumerate(models):
            key = breaker_key(agent_type, model, tenant_id)
            if not self._allowed(key, tracker):
                continue
            # A half-open trial must end in success, failure or release
            holds_trial = self.breaker is not None and self.breaker.state(key) == BreakerState.HALF_OPEN

            try:
                retry_index = 0
                while True:
                    self._check_deadline(started, cause=last_error)
                    attempt = tracker.start(model)
                    try:
                        response = await request_fn(model)
                    except self.non_fallback_errors as e:
                        tracker.complete_failure(attempt, e)
                        self._record_failure(key)
                        holds_trial = False
                        raise
                    except Exception as e:
                        tracker.complete_failure(attempt, e)
                        last_error = e
                        self._record_failure(key)
                        holds_trial = False

                        if not (self.strategy.is_retryable(e) and self.strategy.should_retry(retry_index)):
                            break

                        delay = self.strategy.delay_for(retry_index)
                        self._check_deadline(started, delay, cause=e)
                        logger.info(
                            f"Retry {retry_index + 1}/{self.strategy.max_retries} for {model} "
                            f"in {delay:.2f}s: {e}"
                        )
                        await self.sleep(delay)
                        retry_index += 1

                        if not self._allowed(key, tracker):
                            break
                        holds_trial = self.breaker is not None and self.breaker.state(key) == BreakerState.HALF_OPEN
                    else:
                        tracker.complete_success(attempt, response)
                        if self.breaker is not None:
                            self.breaker.record_success(key)
                        holds_trial = False
                        return response, model
            finally:
                if holds_trial:
                    self.breaker.release_trial(key)

            if index < len(models) - 1:
                logger.warning(f"Model {model} failed, falling back to {models[index + 1]}: {last_error}")

        if last_error is not None:
            raise last_error
        raise AllModelsExhaustedError(
            models,
            last_error=CircuitOpenError(agent_type, models[-1] if models else ""),
            attempts=tracker.to_list(),
        )
