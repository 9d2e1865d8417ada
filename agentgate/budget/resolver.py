"""Resolve the effective BudgetConfig for a call."""

from typing import Any, Callable, Mapping, Optional, Union

from agentgate.budget.config import BudgetConfig, TenantBudget, TenantBudgetStore
from agentgate.config import EngineConfig
from agentgate.errors import ConfigurationError
from agentgate.logging import get_logger

logger = get_logger(__name__)

TenantConfigSource = Union[TenantBudget, Mapping[str, Any], None]


def _as_tenant_budget(raw: TenantConfigSource, tenant_id: Optional[str]) -> Optional[TenantBudget]:
    if raw is None:
        return None
    if isinstance(raw, TenantBudget):
        return raw
    if isinstance(raw, Mapping):
        if not raw:
            return None
        return TenantBudget.model_validate({"tenant_id": tenant_id, **raw})
    raise ConfigurationError(
        f"Tenant budget config must be a mapping or TenantBudget, got {type(raw).__name__}"
    )


class ConfigResolver:
    """Resolves budget configuration with a fixed priority.

    1. Inline runtime override passed with the call
    2. ``tenant_config_resolver(tenant_id)`` callable, if configured
    3. Tenant record from the tenant budget store
    4. Global defaults from EngineConfig
    """

    def __init__(
        self,
        config: EngineConfig,
        tenant_store: Optional[TenantBudgetStore] = None,
        tenant_config_resolver: Optional[Callable[[str], TenantConfigSource]] = None,
    ):
        self.config = config
        self.tenant_store = tenant_store
        self.tenant_config_resolver = tenant_config_resolver

    def resolve_tenant_id(self, tenant_id: Optional[str]) -> Optional[str]:
        """Tenant ids are ignored entirely when multi-tenancy is off."""
        if not self.config.multi_tenancy_enabled or tenant_id in (None, ""):
            return None
        return str(tenant_id)

    def global_config(self) -> BudgetConfig:
        return BudgetConfig.from_defaults(self.config.budgets)

    def resolve(
        self,
        tenant_id: Optional[str],
        runtime_override: TenantConfigSource = None,
    ) -> BudgetConfig:
        defaults = self.config.budgets

        override = _as_tenant_budget(runtime_override, tenant_id)
        if override is not None:
            return override.to_budget_config(defaults)

        tenant_id = self.resolve_tenant_id(tenant_id)
        if tenant_id is None:
            return self.global_config()

        if self.tenant_config_resolver is not None:
            resolved = _as_tenant_budget(self.tenant_config_resolver(tenant_id), tenant_id)
            if resolved is not None:
                return resolved.to_budget_config(defaults)

        tenant_budget = self._lookup_tenant_budget(tenant_id)
        if tenant_budget is not None:
            return tenant_budget.to_budget_config(defaults)

        return self.global_config()

    def _lookup_tenant_budget(self, tenant_id: str) -> Optional[TenantBudget]:
        if self.tenant_store is None:
            return None
        try:
            return self.tenant_store.get(tenant_id)
        except Exception as e:
            # A broken tenant table falls back to global defaults
            logger.warning("tenant_budget_lookup_failed", tenant_id=tenant_id, error=str(e))
            return None
