"""Entry point: run an agent through the middleware pipeline.

Usage:
    executor = Executor(EngineConfig.from_env(), provider=OpenAIClient())
    executor.registry.register(AgentBuilder("SummaryAgent").model("gpt-4o").build())

    result = await executor.run("SummaryAgent", {"text": doc}, tenant="acme", temperature=0.2)
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Union

from agentgate import alerts
from agentgate.agents import AgentDefinition, AgentRegistry
from agentgate.alerts import AlertManager
from agentgate.budget import (
    BudgetKeys,
    BudgetQuery,
    BudgetStatus,
    BudgetTracker,
    ConfigResolver,
    SpendRecorder,
    TenantBudgetStore,
)
from agentgate.budget.resolver import TenantConfigSource
from agentgate.cache import CacheLayer
from agentgate.clock import Clock, utc_now
from agentgate.config import EngineConfig
from agentgate.history import ExecutionRecorder, ExecutionStorage
from agentgate.logging import clear_context, get_logger
from agentgate.models import Result
from agentgate.pipeline.builder import PipelineBuilder
from agentgate.pipeline.context import Context
from agentgate.pipeline.middleware import ProviderCall
from agentgate.pipeline.services import PipelineServices
from agentgate.pipeline.tenant import resolve_tenant_ref
from agentgate.providers import ProviderClient
from agentgate.resilience import BreakerKey, BreakerRegistry, CircuitBreaker
from agentgate.store import CounterStore, MemoryStore, counter_for

logger = get_logger(__name__)


class Executor:
    """Wires the shared collaborators once and runs calls through them."""

    def __init__(
        self,
        config: EngineConfig,
        provider: ProviderClient,
        store: Optional[CounterStore] = None,
        storage: Optional[ExecutionStorage] = None,
        alert_manager: Optional[AlertManager] = None,
        tenant_store: Optional[TenantBudgetStore] = None,
        tenant_config_resolver: Optional[Callable[[str], TenantConfigSource]] = None,
        registry: Optional[AgentRegistry] = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.store = store if store is not None else MemoryStore()
        self.alert_manager = alert_manager or AlertManager(config.alerts)
        self.registry = registry or AgentRegistry()
        self.clock = clock

        keys = BudgetKeys(config.namespace, clock)
        resolver = ConfigResolver(config, tenant_store, tenant_config_resolver)
        self.budget_tracker = BudgetTracker(
            resolver,
            SpendRecorder(self.store, keys, self.alert_manager, counter_for(self.store)),
            BudgetQuery(self.store, keys),
        )

        recorder = None
        if storage is not None:
            recorder = ExecutionRecorder(storage, config, self.alert_manager)

        self.services = PipelineServices(
            config=config,
            provider=provider,
            resolver=resolver,
            budget_tracker=self.budget_tracker,
            cache=CacheLayer(self.store, config.namespace),
            breakers=BreakerRegistry(clock=monotonic, on_open=self._breaker_opened),
            recorder=recorder,
            clock=clock,
            sleep=sleep,
            monotonic=monotonic,
        )

    @property
    def recorder(self) -> Optional[ExecutionRecorder]:
        return self.services.recorder

    def _agent(self, agent: Union[str, AgentDefinition]) -> AgentDefinition:
        if isinstance(agent, AgentDefinition):
            return agent
        return self.registry.get(agent)

    def pipeline(self, agent: AgentDefinition) -> PipelineBuilder:
        """Default middleware stack for ``agent``; override to customize."""
        return PipelineBuilder.default(agent, self.services)

    async def run(
        self,
        agent: Union[str, AgentDefinition],
        input: Any = None,
        tenant: Any = None,
        skip_cache: bool = False,
        stream: bool = False,
        model: Optional[str] = None,
        estimated_cost: float = 0.0,
        **options: Any,
    ) -> Result:
        """Run one invocation and return its Result.

        Raises:
            TenantResolutionError: Unsupported ``tenant`` shape
            BudgetExceededError: Hard budget limit reached
            ProviderError: Last provider error once retries and fallbacks are spent
            TotalTimeoutError / AllModelsExhaustedError: From the reliability engine
        """
        definition = self._agent(agent)
        context = Context(
            definition,
            input,
            model=model,
            options=options,
            tenant=tenant,
            skip_cache=skip_cache,
            stream=stream,
            estimated_cost=estimated_cost,
            clock=self.clock,
        )

        handler = self.pipeline(definition).build(ProviderCall(definition, self.services))
        try:
            await handler(context)
        except Exception as e:
            context.complete()
            if not context.has_output:
                context.set_error(e)
            logger.info(
                "agent_failed",
                agent_type=context.agent_type,
                tenant_id=context.tenant_id,
                error_class=type(e).__name__,
                duration_ms=context.duration_ms,
            )
            raise
        finally:
            clear_context()

        if not context.has_output:
            raise RuntimeError(f"Pipeline for {definition.name} finished without output")

        context.complete()
        result = context.output.model_copy(
            update={
                "started_at": context.started_at,
                "completed_at": context.completed_at,
                "duration_ms": context.duration_ms,
                "cached": context.cached,
                "attempts_count": 0 if context.cached else max(context.attempts_made, 1),
                "attempts": [] if context.cached else context.attempts,
                "tenant_id": context.tenant_id,
            }
        )
        logger.info(
            "agent_completed",
            agent_type=context.agent_type,
            tenant_id=context.tenant_id,
            model_id=result.chosen_model_id,
            cached=result.cached,
            total_cost=result.total_cost,
            duration_ms=result.duration_ms,
        )
        return result

    def budget_status(
        self,
        agent: Optional[Union[str, AgentDefinition]] = None,
        tenant: Any = None,
    ) -> BudgetStatus:
        """Budget snapshot for a tenant, including per-agent limits when ``agent`` is given."""
        agent_type = None
        if agent is not None:
            agent_type = agent.name if isinstance(agent, AgentDefinition) else agent
        ref = resolve_tenant_ref(tenant)
        tenant_id = self.services.resolver.resolve_tenant_id(ref.tenant_id)
        override = ref.config_override if tenant_id is not None else None
        return self.budget_tracker.status(agent_type, tenant_id, override)

    def _breaker_opened(self, key: BreakerKey, breaker: CircuitBreaker) -> None:
        self.alert_manager.notify(
            alerts.BREAKER_OPEN,
            {
                "agent_type": key.agent_type,
                "model_id": key.model_id,
                "tenant_id": key.tenant_id,
                "errors": breaker.errors,
                "within": breaker.within,
                "cooldown": breaker.cooldown,
                "timestamp": self.clock().isoformat(),
            },
        )

    async def drain(self) -> None:
        """Wait for execution records and alert posts still running in the background."""
        if self.recorder is not None:
            await self.recorder.drain()
        await self.alert_manager.drain()
