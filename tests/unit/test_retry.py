"""Tests for retry eligibility and backoff."""

import pytest

from agentgate.errors import (
    OverloadedError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)
from agentgate.resilience import RetryStrategy


class TestShouldRetry:
    def test_allows_exactly_max_retries(self):
        strategy = RetryStrategy(max_retries=2)

        assert strategy.should_retry(0) is True
        assert strategy.should_retry(1) is True
        assert strategy.should_retry(2) is False

    def test_zero_retries_never_retries(self):
        assert RetryStrategy().should_retry(0) is False

    def test_rejects_unknown_backoff(self):
        with pytest.raises(ValueError):
            RetryStrategy(backoff="fibonacci")

    def test_rejects_negative_retries(self):
        with pytest.raises(ValueError):
            RetryStrategy(max_retries=-1)


class TestDelay:
    @pytest.mark.parametrize("n", range(6))
    def test_exponential_delay_within_jitter_bounds(self, n):
        strategy = RetryStrategy(max_retries=6, base_delay=0.4, max_delay=3.0)
        base = min(0.4 * 2**n, 3.0)

        for _ in range(50):
            delay = strategy.delay_for(n)
            assert base <= delay <= 1.5 * base

    def test_jitter_is_only_added(self):
        low = RetryStrategy(base_delay=0.4, rand=lambda: 0.0)
        high = RetryStrategy(base_delay=0.4, rand=lambda: 1.0)

        assert low.delay_for(1) == pytest.approx(0.8)
        assert high.delay_for(1) == pytest.approx(1.2)

    def test_exponential_is_capped(self):
        strategy = RetryStrategy(base_delay=0.4, max_delay=3.0, rand=lambda: 0.0)

        assert strategy.delay_for(10) == pytest.approx(3.0)

    def test_constant_backoff(self):
        strategy = RetryStrategy(backoff="constant", base_delay=0.5, rand=lambda: 0.0)

        assert [strategy.delay_for(i) for i in range(3)] == [0.5, 0.5, 0.5]


class TestIsRetryable:
    @pytest.mark.parametrize(
        "error",
        [
            RateLimitError("slow down"),
            ProviderTimeoutError("timed out"),
            ServerError("boom"),
            OverloadedError("busy"),
            TimeoutError(),
            ConnectionError("reset"),
        ],
    )
    def test_default_error_types(self, error):
        assert RetryStrategy().is_retryable(error) is True

    @pytest.mark.parametrize(
        "message",
        ["Rate limit reached", "HTTP 503 Service Unavailable", "Model is OVERLOADED", "429 Too Many Requests"],
    )
    def test_message_patterns_case_insensitive(self, message):
        assert RetryStrategy().is_retryable(RuntimeError(message)) is True

    def test_other_errors_not_retryable(self):
        assert RetryStrategy().is_retryable(ValueError("bad prompt")) is False

    def test_extra_error_types(self):
        strategy = RetryStrategy(retry_on=(KeyError,))

        assert strategy.is_retryable(KeyError("missing")) is True

    def test_explicit_retryable_flag_wins(self):
        strategy = RetryStrategy()

        assert strategy.is_retryable(ProviderError("503 overloaded", retryable=False)) is False
        assert strategy.is_retryable(ProviderError("odd failure", retryable=True)) is True
