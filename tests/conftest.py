"""Shared fixtures and test doubles."""

import os

# Keep environment-derived settings deterministic before agentgate imports
os.environ.setdefault("AGENTGATE_DATABASE_URL", "sqlite://")
os.environ.setdefault("AGENTGATE_REDIS_URL", "redis://localhost:6379/15")

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402

from agentgate.alerts import AlertManager  # noqa: E402
from agentgate.config import EngineConfig  # noqa: E402
from agentgate.history import InMemoryExecutionStorage  # noqa: E402
from agentgate.models import ProviderRequest, ProviderResponse  # noqa: E402
from agentgate.pipeline import Executor  # noqa: E402
from agentgate.store import MemoryStore  # noqa: E402


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)):
        self.now = start
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.elapsed

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.elapsed += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


class FakeProvider:
    """Provider double scripted per model.

    Each model maps to a list of steps, consumed in order; the last step
    repeats forever. A step is a ProviderResponse or an exception to raise.
    Unscripted models return ``default``.
    """

    def __init__(self, script: Optional[dict] = None, default: Optional[ProviderResponse] = None):
        self.script = {
            model: list(steps) if isinstance(steps, list) else [steps]
            for model, steps in (script or {}).items()
        }
        self.default = default or ProviderResponse(content="ok", input_tokens=100, output_tokens=50)
        self.calls: list[tuple[str, ProviderRequest]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_for(self, model_id: str) -> int:
        return sum(1 for model, _ in self.calls if model == model_id)

    async def invoke(self, model_id: str, request: ProviderRequest) -> ProviderResponse:
        self.calls.append((model_id, request))
        steps = self.script.get(model_id)
        if steps:
            step = steps.pop(0) if len(steps) > 1 else steps[0]
        else:
            step = self.default
        if isinstance(step, BaseException):
            raise step
        return step.model_copy(update={"model_id": step.model_id or model_id})


class CollectingSink:
    """Alert sink that remembers every event."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def notify(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[dict]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock.monotonic)


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def alert_manager(sink):
    return AlertManager(sinks=[sink])


@pytest.fixture
def storage():
    return InMemoryExecutionStorage()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_executor(clock, store, storage, alert_manager, provider):
    """Build an Executor wired to the shared fakes."""

    def _make(config: Optional[EngineConfig] = None, **kwargs) -> Executor:
        kwargs.setdefault("provider", provider)
        kwargs.setdefault("store", store)
        kwargs.setdefault("storage", storage)
        kwargs.setdefault("alert_manager", alert_manager)
        return Executor(
            config or EngineConfig(),
            clock=clock,
            sleep=clock.sleep,
            monotonic=clock.monotonic,
            **kwargs,
        )

    return _make
