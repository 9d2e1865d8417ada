"""Pipeline stages.

Each middleware wraps the next handler, the way a Starlette
``dispatch(request, call_next)`` wraps the app below it. A handler takes
the Context and returns it once the output is set, or raises.

Default order (outermost first):

    Tenant -> Budget -> Instrumentation -> Cache -> Reliability -> ProviderCall

Post-call effects therefore unwind as cache write, execution record,
spend record.
"""

from typing import Awaitable, Callable

from agentgate.agents.definition import AgentDefinition
from agentgate.logging import bind_context, get_logger
from agentgate.metrics.costs import calculate_cost
from agentgate.models import ProviderRequest, Result
from agentgate.pipeline.context import Context
from agentgate.pipeline.services import PipelineServices
from agentgate.pipeline.tenant import resolve_tenant_ref
from agentgate.resilience import AttemptTracker, ReliabilityEngine, RetryStrategy

logger = get_logger(__name__)

Handler = Callable[[Context], Awaitable[Context]]


class Middleware:
    """Base class: holds the next handler and the shared services."""

    def __init__(self, app: Handler, agent: AgentDefinition, services: PipelineServices):
        self.app = app
        self.agent = agent
        self.services = services

    async def __call__(self, context: Context) -> Context:
        return await self.dispatch(context)

    async def dispatch(self, context: Context) -> Context:
        return await self.app(context)


class TenantMiddleware(Middleware):
    """Normalizes ``tenant=`` into an id plus an optional budget override."""

    async def dispatch(self, context: Context) -> Context:
        ref = resolve_tenant_ref(context.tenant)
        context.tenant_id = self.services.resolver.resolve_tenant_id(ref.tenant_id)
        if context.tenant_id is not None:
            context.tenant_config = ref.config_override
            context.tenant_object = ref.obj

        bind_context(agent_type=context.agent_type, tenant_id=context.tenant_id)
        return await self.app(context)


class BudgetMiddleware(Middleware):
    """Pre-flight budget check; spend, token and execution counts after success.

    A BudgetExceededError aborts the call before any provider request.
    Failures while recording usage are logged and never reach the caller.
    """

    async def dispatch(self, context: Context) -> Context:
        tracker = self.services.budget_tracker
        context.budget_config = tracker.check_budget(
            context.agent_type,
            tenant_id=context.tenant_id,
            runtime_override=context.tenant_config,
            estimated_cost=context.estimated_cost,
        )

        await self.app(context)

        if context.success and not context.cached:
            self._record_usage(context)
        return context

    def _record_usage(self, context: Context) -> None:
        try:
            self.services.budget_tracker.record_usage(
                context.agent_type,
                context.tenant_id,
                context.budget_config,
                cost=context.total_cost,
                tokens=context.total_tokens,
            )
        except Exception as e:
            logger.warning(
                "budget_record_failed",
                agent_type=context.agent_type,
                tenant_id=context.tenant_id,
                total_cost=context.total_cost,
                error=str(e),
                error_class=type(e).__name__,
            )


class InstrumentationMiddleware(Middleware):
    """Times the call and writes an execution record for it."""

    async def dispatch(self, context: Context) -> Context:
        recorder = self.services.recorder
        try:
            await self.app(context)
        except Exception as e:
            context.complete()
            await self._record(recorder.record_failure(context, e), context)
            raise

        context.complete()
        if context.cached:
            if self.services.config.track_cache_hits:
                await self._record(recorder.record_cache_hit(context), context)
        else:
            await self._record(recorder.record_success(context), context)
        return context

    async def _record(self, pending: Awaitable[None], context: Context) -> None:
        try:
            await pending
        except Exception as e:
            logger.warning(
                "execution_record_failed",
                agent_type=context.agent_type,
                error=str(e),
                error_class=type(e).__name__,
            )


class CacheMiddleware(Middleware):
    """Serves repeated requests from the response cache."""

    async def dispatch(self, context: Context) -> Context:
        if context.skip_cache or context.stream:
            return await self.app(context)

        cache = self.services.cache
        context.cache_key = cache.fingerprint(self.agent, context.model, context.params, context.input)

        cached = cache.lookup(context.cache_key)
        if cached is not None:
            context.cached = True
            context.model_used = cached.chosen_model_id or cached.model_id
            context.set_output(cached)
            logger.info("cache_hit", agent_type=context.agent_type, cache_key=context.cache_key)
            return context

        await self.app(context)

        if context.success:
            cache.store_result(context.cache_key, context.output, self.agent.cache.ttl)
        return context


class ReliabilityMiddleware(Middleware):
    """Runs the rest of the chain under retries, fallbacks and the breaker."""

    def engine(self) -> ReliabilityEngine:
        settings = self.agent.reliability
        breaker = None
        if settings.circuit_breaker is not None:
            breaker = self.services.breakers.get(
                self.agent.name,
                errors=settings.circuit_breaker.errors,
                within=settings.circuit_breaker.within,
                cooldown=settings.circuit_breaker.cooldown,
            )

        strategy = RetryStrategy(
            max_retries=settings.max_retries,
            backoff=settings.backoff,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            retry_on=settings.retry_on,
            retryable_patterns=settings.retryable_patterns,
        )
        return ReliabilityEngine(
            strategy,
            total_timeout=settings.total_timeout,
            breaker=breaker,
            non_fallback_errors=settings.non_fallback_errors,
            sleep=self.services.sleep,
            clock=self.services.monotonic,
        )

    async def dispatch(self, context: Context) -> Context:
        tracker = AttemptTracker(clock=self.services.clock, timer=self.services.monotonic)

        async def attempt(model: str) -> Result:
            context.attempt_model = model
            await self.app(context)
            return context.output

        try:
            _, model_used = await self.engine().invoke(
                context.model,
                self.agent.reliability.fallback_models,
                attempt,
                agent_type=context.agent_type,
                tenant_id=context.tenant_id,
                tracker=tracker,
            )
        finally:
            context.attempts = tracker.to_list()
            context.attempts_made = tracker.count

        context.model_used = model_used
        return context


class ProviderCall:
    """Terminal stage: one provider request for the current model."""

    def __init__(self, agent: AgentDefinition, services: PipelineServices):
        self.agent = agent
        self.services = services

    async def __call__(self, context: Context) -> Context:
        model = context.attempt_model or context.model
        request = ProviderRequest(
            agent_type=context.agent_type,
            execution_type=self.agent.execution_type,
            input=context.input,
            parameters=context.params,
            stream=context.stream,
        )
        response = await self.services.provider.invoke(model, request)

        config = self.services.config
        breakdown = calculate_cost(response.tokens, config.pricing_for(model))
        total_cost = breakdown.total_cost if response.cost is None else round(response.cost, 6)

        context.input_tokens = response.input_tokens
        context.output_tokens = response.output_tokens
        context.input_cost = breakdown.input_cost
        context.output_cost = breakdown.output_cost
        context.total_cost = total_cost
        context.model_used = model

        context.set_output(
            Result(
                content=response.content,
                model_id=context.model,
                chosen_model_id=model,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                input_cost=breakdown.input_cost,
                output_cost=breakdown.output_cost,
                total_cost=total_cost,
                finish_reason=response.finish_reason,
                segments=response.segments,
                words=response.words,
                language=response.language,
                duration=response.duration,
            )
        )
        return context
