"""Per-attempt bookkeeping for one invocation's retry/fallback sequence."""

import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from agentgate.clock import Clock, utc_now


@dataclass
class Attempt:
    model_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    input_tokens: int = 0
    output_tokens: int = 0
    error_class: Optional[str] = None
    error_message: Optional[str] = None
    short_circuited: bool = False
    _start: float = 0.0

    @property
    def success(self) -> bool:
        return self.completed_at is not None and self.error_class is None and not self.short_circuited

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("_start")
        data["started_at"] = self.started_at.isoformat()
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        data["success"] = self.success
        return data


class AttemptTracker:
    """Collects Attempts in the order they were made."""

    def __init__(self, clock: Clock = utc_now, timer: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.timer = timer
        self.attempts: list[Attempt] = []

    def start(self, model_id: str) -> Attempt:
        attempt = Attempt(model_id=model_id, started_at=self.clock(), _start=self.timer())
        self.attempts.append(attempt)
        return attempt

    def _finish(self, attempt: Attempt) -> None:
        attempt.completed_at = self.clock()
        attempt.duration_ms = int((self.timer() - attempt._start) * 1000)

    def complete_success(self, attempt: Attempt, response: Any = None) -> None:
        """Close an attempt; token counts are taken from ``response`` when it has them."""
        self._finish(attempt)
        attempt.input_tokens = getattr(response, "input_tokens", 0) or 0
        attempt.output_tokens = getattr(response, "output_tokens", 0) or 0

    def complete_failure(self, attempt: Attempt, error: BaseException) -> None:
        self._finish(attempt)
        attempt.error_class = type(error).__name__
        attempt.error_message = str(error)[:1000]

    def record_short_circuit(self, model_id: str) -> Attempt:
        now = self.clock()
        attempt = Attempt(
            model_id=model_id,
            started_at=now,
            completed_at=now,
            duration_ms=0,
            error_class="CircuitOpenError",
            short_circuited=True,
        )
        self.attempts.append(attempt)
        return attempt

    @property
    def count(self) -> int:
        """Attempts that actually reached a provider."""
        return sum(1 for a in self.attempts if not a.short_circuited)

    def count_for(self, model_id: str) -> int:
        return sum(1 for a in self.attempts if a.model_id == model_id and not a.short_circuited)

    @property
    def successful_attempt(self) -> Optional[Attempt]:
        return next((a for a in self.attempts if a.success), None)

    @property
    def chosen_model_id(self) -> Optional[str]:
        attempt = self.successful_attempt
        return attempt.model_id if attempt else None

    @property
    def total_tokens(self) -> int:
        return sum(a.input_tokens + a.output_tokens for a in self.attempts)

    def to_list(self) -> list[dict[str, Any]]:
        return [a.to_dict() for a in self.attempts]
