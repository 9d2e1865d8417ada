"""Normalize the ``tenant=`` argument of a call.

Accepted shapes:

    None                                  -> NoTenant
    "acme" / 42                           -> TenantById
    {"id": "acme", "daily_limit": 5.0}    -> TenantInline (other keys override budgets)
    {"id": "acme", "object": org}         -> TenantObject
    org (exposes llm_tenant_id)           -> TenantObject (llm_budget_config, if present, overrides)

Anything else raises TenantResolutionError before any other stage runs.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from agentgate.errors import TenantResolutionError


@dataclass(frozen=True)
class NoTenant:
    tenant_id: None = None
    config_override: None = None
    obj: None = None


@dataclass(frozen=True)
class TenantById:
    tenant_id: str
    config_override: None = None
    obj: None = None


@dataclass(frozen=True)
class TenantInline:
    tenant_id: str
    config_override: dict[str, Any] = field(default_factory=dict)
    obj: None = None


@dataclass(frozen=True)
class TenantObject:
    tenant_id: str
    obj: Any = None
    config_override: Optional[dict[str, Any]] = None


TenantRef = Union[NoTenant, TenantById, TenantInline, TenantObject]


def _tenant_id(value: Any, original: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TenantResolutionError(original)
    return str(value)


def resolve_tenant_ref(value: Any) -> TenantRef:
    if value is None:
        return NoTenant()

    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return TenantById(str(value))

    if isinstance(value, Mapping):
        if "id" not in value:
            raise TenantResolutionError(value)
        tenant_id = _tenant_id(value["id"], value)
        override = {k: v for k, v in value.items() if k not in ("id", "object")}
        if "object" in value:
            return TenantObject(tenant_id, value["object"], override or None)
        return TenantInline(tenant_id, override)

    if hasattr(value, "llm_tenant_id"):
        tenant_id = _tenant_id(value.llm_tenant_id, value)
        override = getattr(value, "llm_budget_config", None)
        if override is not None and not isinstance(override, Mapping):
            raise TenantResolutionError(value)
        return TenantObject(tenant_id, value, dict(override) if override else None)

    raise TenantResolutionError(value)
