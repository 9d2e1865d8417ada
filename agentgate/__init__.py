"""Middleware pipeline for LLM agent invocations."""

from agentgate.agents import AgentBuilder, AgentDefinition, AgentRegistry
from agentgate.config import EngineConfig
from agentgate.errors import (
    AgentGateError,
    AllModelsExhaustedError,
    BudgetExceededError,
    CircuitOpenError,
    ProviderError,
    TotalTimeoutError,
)
from agentgate.models import ProviderRequest, ProviderResponse, Result
from agentgate.pipeline import Executor

__all__ = [
    "AgentBuilder",
    "AgentDefinition",
    "AgentGateError",
    "AgentRegistry",
    "AllModelsExhaustedError",
    "BudgetExceededError",
    "CircuitOpenError",
    "EngineConfig",
    "Executor",
    "ProviderError",
    "ProviderRequest",
    "ProviderResponse",
    "Result",
    "TotalTimeoutError",
]
