"""Shared collaborators handed to every middleware."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from agentgate.budget import BudgetTracker, ConfigResolver
from agentgate.cache import CacheLayer
from agentgate.clock import Clock, utc_now
from agentgate.config import EngineConfig
from agentgate.history import ExecutionRecorder
from agentgate.providers import ProviderClient
from agentgate.resilience import BreakerRegistry


@dataclass
class PipelineServices:
    config: EngineConfig
    provider: ProviderClient
    resolver: ConfigResolver
    budget_tracker: BudgetTracker
    cache: CacheLayer
    breakers: BreakerRegistry
    recorder: Optional[ExecutionRecorder] = None
    clock: Clock = utc_now
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    monotonic: Callable[[], float] = field(default=time.monotonic)
