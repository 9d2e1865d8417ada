"""Provider client interface.

Provider adapters live outside this package. They implement
``invoke(model_id, request)`` and raise ProviderError subclasses; the
pipeline never inspects provider-specific exception types.
"""

from typing import Optional, Protocol

from agentgate.errors import (
    OverloadedError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)
from agentgate.models import ProviderRequest, ProviderResponse


class ProviderClient(Protocol):
    async def invoke(self, model_id: str, request: ProviderRequest) -> ProviderResponse: ...


def classify_http_error(
    status_code: int,
    message: str = "",
    model_id: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> ProviderError:
    """Map an HTTP failure from a provider API onto the error taxonomy."""
    text = message or f"HTTP {status_code}"
    kwargs = {"model_id": model_id, "status_code": status_code}

    if status_code == 429:
        return RateLimitError(text, retry_after=retry_after, **kwargs)
    if status_code in (408, 504):
        return ProviderTimeoutError(text, **kwargs)
    if status_code == 529 or "overloaded" in text.lower():
        return OverloadedError(text, **kwargs)
    if 500 <= status_code < 600:
        return ServerError(text, **kwargs)
    return ProviderError(text, retryable=False, **kwargs)
