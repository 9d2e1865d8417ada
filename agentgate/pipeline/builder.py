"""Assemble the middleware chain for an agent."""

from typing import Optional, Type

from agentgate.agents.definition import AgentDefinition
from agentgate.pipeline.middleware import (
    BudgetMiddleware,
    CacheMiddleware,
    Handler,
    InstrumentationMiddleware,
    Middleware,
    ReliabilityMiddleware,
    TenantMiddleware,
)
from agentgate.pipeline.services import PipelineServices

MiddlewareClass = Type[Middleware]


class PipelineBuilder:
    """Ordered list of middleware classes, outermost first.

    Usage:
        builder = PipelineBuilder.default(agent, services)
        builder.insert_after(TenantMiddleware, AuditMiddleware)
        handler = builder.build(ProviderCall(agent, services))
        context = await handler(context)
    """

    def __init__(self, agent: AgentDefinition, services: PipelineServices):
        self.agent = agent
        self.services = services
        self.stack: list[MiddlewareClass] = []

    def _index(self, middleware: MiddlewareClass) -> int:
        try:
            return self.stack.index(middleware)
        except ValueError:
            raise ValueError(f"{middleware.__name__} is not in the pipeline") from None

    def use(self, middleware: MiddlewareClass) -> "PipelineBuilder":
        self.stack.append(middleware)
        return self

    def insert_before(self, existing: MiddlewareClass, middleware: MiddlewareClass) -> "PipelineBuilder":
        self.stack.insert(self._index(existing), middleware)
        return self

    def insert_after(self, existing: MiddlewareClass, middleware: MiddlewareClass) -> "PipelineBuilder":
        self.stack.insert(self._index(existing) + 1, middleware)
        return self

    def delete(self, middleware: MiddlewareClass) -> "PipelineBuilder":
        self.stack.pop(self._index(middleware))
        return self

    def __contains__(self, middleware: MiddlewareClass) -> bool:
        return middleware in self.stack

    def build(self, core: Handler) -> Handler:
        handler = core
        for middleware in reversed(self.stack):
            handler = middleware(handler, self.agent, self.services)
        return handler

    @classmethod
    def default(
        cls,
        agent: AgentDefinition,
        services: PipelineServices,
        extra: Optional[list[MiddlewareClass]] = None,
    ) -> "PipelineBuilder":
        builder = cls(agent, services)
        builder.use(TenantMiddleware)
        # Budget always runs: counters are kept even while limits are off
        builder.use(BudgetMiddleware)
        if services.config.track_executions and services.recorder is not None:
            builder.use(InstrumentationMiddleware)
        if agent.caches:
            builder.use(CacheMiddleware)
        if agent.reliability.enabled:
            builder.use(ReliabilityMiddleware)
        for middleware in extra or []:
            builder.use(middleware)
        return builder
