"""Budget configuration: raw tenant records and resolved snapshots.

A TenantBudget is what an operator stores for a tenant. A BudgetConfig is
the value a single call is checked against, produced by resolving the
tenant record against the global defaults. ``None`` always means
"unlimited" for a dimension, never zero.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from agentgate.config import BudgetDefaults
from agentgate.models import EnforcementMode

DAILY = "daily"
MONTHLY = "monthly"
PERIODS = (DAILY, MONTHLY)

GLOBAL = "global"
AGENT = "agent"


@dataclass(frozen=True)
class BudgetConfig:
    """Resolved budget limits for one call.

    Attributes:
        enabled: False disables every check and alert
        enforcement: none, soft (alert but allow) or hard (reject)
        global_daily / global_monthly: cost limits in USD
        per_agent_daily / per_agent_monthly: agent name -> USD limit
        global_daily_tokens / global_monthly_tokens: token limits
        global_daily_executions / global_monthly_executions: call-count limits
    """

    enabled: bool = False
    enforcement: EnforcementMode = EnforcementMode.NONE
    global_daily: Optional[float] = None
    global_monthly: Optional[float] = None
    per_agent_daily: Mapping[str, float] = field(default_factory=dict)
    per_agent_monthly: Mapping[str, float] = field(default_factory=dict)
    global_daily_tokens: Optional[int] = None
    global_monthly_tokens: Optional[int] = None
    global_daily_executions: Optional[int] = None
    global_monthly_executions: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "per_agent_daily", MappingProxyType(dict(self.per_agent_daily or {})))
        object.__setattr__(self, "per_agent_monthly", MappingProxyType(dict(self.per_agent_monthly or {})))

    @property
    def is_hard(self) -> bool:
        return self.enforcement == EnforcementMode.HARD

    def cost_limit(self, scope: str, period: str, agent_type: Optional[str] = None) -> Optional[float]:
        if scope == GLOBAL:
            return self.global_daily if period == DAILY else self.global_monthly
        if scope == AGENT:
            limits = self.per_agent_daily if period == DAILY else self.per_agent_monthly
            return limits.get(agent_type) if agent_type else None
        raise ValueError(f"Unknown scope: {scope}")

    def token_limit(self, period: str) -> Optional[int]:
        return self.global_daily_tokens if period == DAILY else self.global_monthly_tokens

    def execution_limit(self, period: str) -> Optional[int]:
        return self.global_daily_executions if period == DAILY else self.global_monthly_executions

    @classmethod
    def from_defaults(cls, defaults: BudgetDefaults) -> "BudgetConfig":
        return cls(
            enabled=defaults.enabled,
            enforcement=defaults.enforcement,
            global_daily=defaults.global_daily,
            global_monthly=defaults.global_monthly,
            per_agent_daily=defaults.per_agent_daily,
            per_agent_monthly=defaults.per_agent_monthly,
            global_daily_tokens=defaults.global_daily_tokens,
            global_monthly_tokens=defaults.global_monthly_tokens,
            global_daily_executions=defaults.global_daily_executions,
            global_monthly_executions=defaults.global_monthly_executions,
        )


def _limit_field(*names: str):
    return Field(default=None, ge=0, validation_alias=AliasChoices(*names))


class TenantBudget(BaseModel):
    """Budget record stored for a tenant, or passed inline with a call.

    With ``inherit_global_defaults`` each unset dimension falls back to the
    global default; without it an unset dimension is unlimited and an unset
    enforcement mode means soft.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tenant_id: Optional[str] = None
    name: Optional[str] = None
    daily_limit: Optional[float] = _limit_field("daily_limit", "daily_budget_limit")
    monthly_limit: Optional[float] = _limit_field("monthly_limit", "monthly_budget_limit")
    per_agent_daily: dict[str, float] = Field(default_factory=dict)
    per_agent_monthly: dict[str, float] = Field(default_factory=dict)
    daily_token_limit: Optional[int] = _limit_field("daily_token_limit")
    monthly_token_limit: Optional[int] = _limit_field("monthly_token_limit")
    daily_execution_limit: Optional[int] = _limit_field("daily_execution_limit")
    monthly_execution_limit: Optional[int] = _limit_field("monthly_execution_limit")
    enforcement: Optional[EnforcementMode] = None
    inherit_global_defaults: bool = True

    def _effective(self, own: Any, default: Any) -> Any:
        if own is not None:
            return own
        return default if self.inherit_global_defaults else None

    def effective_enforcement(self, defaults: BudgetDefaults) -> EnforcementMode:
        if self.enforcement is not None:
            return self.enforcement
        return defaults.enforcement if self.inherit_global_defaults else EnforcementMode.SOFT

    def to_budget_config(self, defaults: BudgetDefaults) -> BudgetConfig:
        enforcement = self.effective_enforcement(defaults)
        return BudgetConfig(
            enabled=enforcement != EnforcementMode.NONE,
            enforcement=enforcement,
            global_daily=self._effective(self.daily_limit, defaults.global_daily),
            global_monthly=self._effective(self.monthly_limit, defaults.global_monthly),
            per_agent_daily=self._effective(self.per_agent_daily or None, defaults.per_agent_daily) or {},
            per_agent_monthly=self._effective(self.per_agent_monthly or None, defaults.per_agent_monthly) or {},
            global_daily_tokens=self._effective(self.daily_token_limit, defaults.global_daily_tokens),
            global_monthly_tokens=self._effective(self.monthly_token_limit, defaults.global_monthly_tokens),
            global_daily_executions=self._effective(self.daily_execution_limit, defaults.global_daily_executions),
            global_monthly_executions=self._effective(self.monthly_execution_limit, defaults.global_monthly_executions),
        )


class TenantBudgetStore(Protocol):
    def get(self, tenant_id: str) -> Optional[TenantBudget]: ...


class InMemoryTenantBudgetStore:
    """Tenant budget records kept in a dict."""

    def __init__(self, budgets: Optional[list[TenantBudget]] = None):
        self._budgets: dict[str, TenantBudget] = {}
        for budget in budgets or []:
            self.put(budget)

    def put(self, budget: TenantBudget) -> None:
        if not budget.tenant_id:
            raise ValueError("tenant_id required to store a tenant budget")
        self._budgets[budget.tenant_id] = budget

    def get(self, tenant_id: str) -> Optional[TenantBudget]:
        return self._budgets.get(tenant_id)
