"""Execution history: records, storage and the recorder."""

from agentgate.history.models import ExecutionRecord, ExecutionStats, ExecutionStatus
from agentgate.history.recorder import ExecutionRecorder
from agentgate.history.storage import (
    ExecutionStorage,
    InMemoryExecutionStorage,
    SQLExecutionStorage,
)

__all__ = [
    "ExecutionRecord",
    "ExecutionRecorder",
    "ExecutionStats",
    "ExecutionStatus",
    "ExecutionStorage",
    "InMemoryExecutionStorage",
    "SQLExecutionStorage",
]
