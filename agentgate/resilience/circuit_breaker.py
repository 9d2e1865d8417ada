"""Per-agent circuit breaker.

State machine per key:

    closed --(errors failures within `within` s)--> open
    open --(cooldown elapsed)--> half-open (exactly one trial allowed)
    half-open --success--> closed
    half-open --failure--> open (cooldown restarts)
    half-open --trial released unreported--> open (next caller gets a trial)

Failures are counted in a sliding window: anything older than `within`
seconds no longer counts toward the threshold. State lives in process
memory; separate processes keep separate breakers.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class BreakerKey(NamedTuple):
    agent_type: str
    model_id: str
    tenant_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.agent_type}:{self.model_id}:{self.tenant_id or 'global'}"


def breaker_key(agent_type: str, model_id: str, tenant_id: Optional[str] = None) -> BreakerKey:
    return BreakerKey(agent_type, model_id, tenant_id)


@dataclass
class _Circuit:
    state: BreakerState = BreakerState.CLOSED
    failures: deque = field(default_factory=deque)
    opened_at: Optional[float] = None
    trial_started_at: Optional[float] = None


class CircuitBreaker:
    """Sliding-window breaker keyed by (agent, model, tenant).

    Args:
        errors: Failures within the window that open the circuit (default 10)
        within: Window length in seconds (default 60)
        cooldown: Seconds the circuit stays open before a trial (default 300)
        clock: Monotonic time source
        on_open: Called with the key whenever a circuit opens
    """

    def __init__(
        self,
        errors: int = 10,
        within: float = 60,
        cooldown: float = 300,
        clock: Callable[[], float] = time.monotonic,
        on_open: Optional[Callable[[BreakerKey], None]] = None,
    ):
        if errors < 1:
            raise ValueError("errors threshold must be >= 1")
        self.errors = errors
        self.within = within
        self.cooldown = cooldown
        self.clock = clock
        self.on_open = on_open
        self._circuits: dict[BreakerKey, _Circuit] = {}
        self._lock = threading.Lock()

    def _circuit(self, key: BreakerKey) -> _Circuit:
        return self._circuits.setdefault(key, _Circuit())

    def _prune(self, circuit: _Circuit, now: float) -> None:
        while circuit.failures and now - circuit.failures[0] > self.within:
            circuit.failures.popleft()

    def allow_request(self, key: BreakerKey) -> bool:
        with self._lock:
            circuit = self._circuit(key)
            now = self.clock()
            if circuit.state == BreakerState.CLOSED:
                return True
            if circuit.state == BreakerState.OPEN:
                if now - circuit.opened_at >= self.cooldown:
                    circuit.state = BreakerState.HALF_OPEN
                    circuit.trial_started_at = now
                    return True
                return False
            # Half-open: the single trial is already out. A trial that never
            # reported back within a cooldown is handed out again.
            if now - circuit.trial_started_at >= self.cooldown:
                circuit.trial_started_at = now
                return True
            return False

    def record_success(self, key: BreakerKey) -> None:
        with self._lock:
            circuit = self._circuit(key)
            if circuit.state != BreakerState.CLOSED:
                logger.info(f"Circuit closed for {key}")
            self._circuits[key] = _Circuit()

    def record_failure(self, key: BreakerKey) -> None:
        opened = False
        with self._lock:
            circuit = self._circuit(key)
            now = self.clock()
            if circuit.state == BreakerState.HALF_OPEN:
                self._open(circuit, now)
                opened = True
            elif circuit.state == BreakerState.CLOSED:
                circuit.failures.append(now)
                self._prune(circuit, now)
                if len(circuit.failures) >= self.errors:
                    self._open(circuit, now)
                    opened = True

        if opened:
            logger.warning(f"Circuit opened for {key}")
            if self.on_open:
                self.on_open(key)

    def _open(self, circuit: _Circuit, now: float) -> None:
        circuit.state = BreakerState.OPEN
        circuit.opened_at = now
        circuit.failures.clear()
        circuit.trial_started_at = None

    def release_trial(self, key: BreakerKey) -> None:
        """Return an unreported half-open trial; the circuit stays open."""
        with self._lock:
            circuit = self._circuit(key)
            if circuit.state == BreakerState.HALF_OPEN:
                circuit.state = BreakerState.OPEN
                circuit.trial_started_at = None

    def state(self, key: BreakerKey) -> BreakerState:
        with self._lock:
            return self._circuit(key).state

    def status(self, key: BreakerKey) -> dict:
        with self._lock:
            circuit = self._circuit(key)
            now = self.clock()
            self._prune(circuit, now)
            cooldown_remaining = None
            if circuit.state == BreakerState.OPEN:
                cooldown_remaining = max(self.cooldown - (now - circuit.opened_at), 0)
            return {
                "key": str(key),
                "state": circuit.state.value,
                "failure_count": len(circuit.failures),
                "errors_threshold": self.errors,
                "within": self.within,
                "cooldown": self.cooldown,
                "cooldown_remaining": cooldown_remaining,
            }

    def reset(self, key: BreakerKey) -> None:
        with self._lock:
            self._circuits.pop(key, None)


class BreakerRegistry:
    """One CircuitBreaker per agent type, shared across invocations."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        on_open: Optional[Callable[[BreakerKey, CircuitBreaker], None]] = None,
    ):
        self.clock = clock
        self.on_open = on_open
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, agent_type: str, errors: int, within: float, cooldown: float) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(agent_type)
            if breaker is None:
                breaker = CircuitBreaker(errors=errors, within=within, cooldown=cooldown, clock=self.clock)
                if self.on_open is not None:
                    breaker.on_open = lambda key, b=breaker: self.on_open(key, b)
                self._breakers[agent_type] = breaker
            return breaker
