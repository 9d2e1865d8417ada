"""Middleware pipeline wrapping every agent invocation."""

from agentgate.pipeline.builder import PipelineBuilder
from agentgate.pipeline.context import Context
from agentgate.pipeline.executor import Executor
from agentgate.pipeline.middleware import (
    BudgetMiddleware,
    CacheMiddleware,
    Handler,
    InstrumentationMiddleware,
    Middleware,
    ProviderCall,
    ReliabilityMiddleware,
    TenantMiddleware,
)
from agentgate.pipeline.services import PipelineServices
from agentgate.pipeline.tenant import (
    NoTenant,
    TenantById,
    TenantInline,
    TenantObject,
    TenantRef,
    resolve_tenant_ref,
)

__all__ = [
    "BudgetMiddleware",
    "CacheMiddleware",
    "Context",
    "Executor",
    "Handler",
    "InstrumentationMiddleware",
    "Middleware",
    "NoTenant",
    "PipelineBuilder",
    "PipelineServices",
    "ProviderCall",
    "ReliabilityMiddleware",
    "TenantById",
    "TenantInline",
    "TenantMiddleware",
    "TenantObject",
    "TenantRef",
    "resolve_tenant_ref",
]
