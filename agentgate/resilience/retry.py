"""Retry eligibility and backoff.

Usage:
    strategy = RetryStrategy(max_retries=2, backoff="exponential")

    for retry_index in itertools.count():
        try:
            return await call()
        except Exception as e:
            if not (strategy.is_retryable(e) and strategy.should_retry(retry_index)):
                raise
            await asyncio.sleep(strategy.delay_for(retry_index))
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Callable, Type

from agentgate.errors import (
    OverloadedError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)

CONSTANT = "constant"
EXPONENTIAL = "exponential"

# Common retryable errors
DEFAULT_RETRYABLE_ERRORS: tuple[Type[BaseException], ...] = (
    RateLimitError,
    ProviderTimeoutError,
    ServerError,
    OverloadedError,
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
)

DEFAULT_RETRYABLE_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "rate_limit",
    "too many requests",
    "429",
    "500",
    "502",
    "503",
    "504",
    "service unavailable",
    "internal server error",
    "bad gateway",
    "gateway timeout",
    "overloaded",
    "capacity",
    "timeout",
    "timed out",
)


@dataclass
class RetryStrategy:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Retries allowed after the first attempt (default 0)
        backoff: "exponential" (default) or "constant"
        base_delay: Base delay in seconds (default 0.4)
        max_delay: Cap on the exponential delay in seconds (default 3.0)
        retry_on: Extra exception types to treat as retryable
        retryable_patterns: Case-insensitive substrings marking an error message retryable
    """

    max_retries: int = 0
    backoff: str = EXPONENTIAL
    base_delay: float = 0.4
    max_delay: float = 3.0
    retry_on: tuple[Type[BaseException], ...] = ()
    retryable_patterns: tuple[str, ...] = DEFAULT_RETRYABLE_PATTERNS
    rand: Callable[[], float] = field(default=random.random, repr=False)

    def __post_init__(self):
        if self.backoff not in (CONSTANT, EXPONENTIAL):
            raise ValueError(f"Unknown backoff: {self.backoff}")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @property
    def retryable_errors(self) -> tuple[Type[BaseException], ...]:
        return DEFAULT_RETRYABLE_ERRORS + tuple(self.retry_on)

    def should_retry(self, retry_index: int) -> bool:
        """Whether retry number ``retry_index`` (0-indexed) is still allowed."""
        return retry_index < self.max_retries

    def base_delay_for(self, retry_index: int) -> float:
        if self.backoff == CONSTANT:
            return self.base_delay
        return min(self.base_delay * (2**retry_index), self.max_delay)

    def delay_for(self, retry_index: int) -> float:
        """Backoff delay plus 0-50% jitter, only ever added."""
        delay = self.base_delay_for(retry_index)
        return delay + self.rand() * delay * 0.5

    def is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, ProviderError) and error.retryable is not None:
            return error.retryable
        if isinstance(error, self.retryable_errors):
            return True
        message = str(error).lower()
        return any(pattern.lower() in message for pattern in self.retryable_patterns)
