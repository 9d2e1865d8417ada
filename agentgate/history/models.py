"""Execution history records.

One ExecutionRecord is written per terminal call (success, failure, or a
cache hit when those are tracked). The record is built completely before
it is handed to storage; the pipeline never updates it afterwards.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from agentgate.models import ExecutionType


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class ExecutionRecord(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid4()))
    agent_type: str
    agent_version: str = "1.0"
    execution_type: ExecutionType = ExecutionType.CHAT
    model_id: Optional[str] = None
    chosen_model_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    duration_ms: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tenant_id: Optional[str] = None
    error_class: Optional[str] = None
    error_message: Optional[str] = None
    cache_hit: bool = False
    response_cache_key: Optional[str] = None
    attempts_count: int = 0
    parameters: dict[str, Any] = Field(default_factory=dict)
    response: Optional[Any] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ExecutionStats(BaseModel):
    """Aggregates over stored executions."""

    count: int = 0
    success_count: int = 0
    error_count: int = 0
    timeout_count: int = 0
    cache_hits: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    avg_duration_ms: Optional[float] = None

    @property
    def success_rate(self) -> float:
        return round(self.success_count / self.count * 100, 2) if self.count else 0.0
