"""Read side of budget accounting."""

import math
from typing import Any, Optional

from pydantic import BaseModel, Field

from agentgate.budget.config import AGENT, DAILY, GLOBAL, MONTHLY, BudgetConfig
from agentgate.budget.forecast import Forecaster
from agentgate.budget.keys import BudgetKeys
from agentgate.models import EnforcementMode
from agentgate.store import CounterStore

# Returned for dimensions with no configured limit
UNLIMITED = math.inf


class DimensionStatus(BaseModel):
    limit: float
    current: float
    remaining: float
    percentage_used: float


class BudgetStatus(BaseModel):
    """Snapshot of every configured budget dimension for a tenant."""

    tenant_id: Optional[str] = None
    enabled: bool = False
    enforcement: EnforcementMode = EnforcementMode.NONE
    dimensions: dict[str, DimensionStatus] = Field(default_factory=dict)
    forecast: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tenant_id": self.tenant_id,
            "enabled": self.enabled,
            "enforcement": self.enforcement.value,
        }
        for name, dimension in self.dimensions.items():
            data[name] = dimension.model_dump()
        if self.forecast is not None:
            data["forecast"] = self.forecast
        return data


def percentage(current: float, limit: float) -> float:
    if limit <= 0:
        return 100.0 if current > 0 else 0.0
    return round(current / limit * 100, 2)


def _dimension(limit: Optional[float], current: float, digits: Optional[int] = 6) -> Optional[DimensionStatus]:
    if limit is None:
        return None
    remaining = max(limit - current, 0)
    return DimensionStatus(
        limit=limit,
        current=round(current, digits) if digits is not None else current,
        remaining=round(remaining, digits) if digits is not None else remaining,
        percentage_used=percentage(current, limit),
    )


class BudgetQuery:
    """Pure reads over the counter key scheme."""

    def __init__(self, store: CounterStore, keys: BudgetKeys):
        self.store = store
        self.keys = keys
        self.forecaster = Forecaster(self, keys.clock)

    def _read(self, key: str) -> float:
        value = self.store.read(key)
        return float(value) if value is not None else 0.0

    def current_spend(
        self,
        scope: str,
        period: str,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> float:
        return self._read(self.keys.spend(scope, period, agent_type=agent_type, tenant_id=tenant_id))

    def current_tokens(self, period: str, tenant_id: Optional[str] = None) -> int:
        return int(self._read(self.keys.tokens(period, tenant_id)))

    def current_executions(self, period: str, tenant_id: Optional[str] = None) -> int:
        return int(self._read(self.keys.executions(period, tenant_id)))

    def remaining_budget(
        self,
        scope: str,
        period: str,
        budget_config: BudgetConfig,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> float:
        limit = budget_config.cost_limit(scope, period, agent_type)
        if limit is None:
            return UNLIMITED
        return max(limit - self.current_spend(scope, period, agent_type, tenant_id), 0)

    def remaining_token_budget(
        self, period: str, budget_config: BudgetConfig, tenant_id: Optional[str] = None
    ) -> float:
        limit = budget_config.token_limit(period)
        if limit is None:
            return UNLIMITED
        return max(limit - self.current_tokens(period, tenant_id), 0)

    def remaining_execution_budget(
        self, period: str, budget_config: BudgetConfig, tenant_id: Optional[str] = None
    ) -> float:
        limit = budget_config.execution_limit(period)
        if limit is None:
            return UNLIMITED
        return max(limit - self.current_executions(period, tenant_id), 0)

    def status(
        self,
        budget_config: BudgetConfig,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> BudgetStatus:
        dimensions: dict[str, Optional[DimensionStatus]] = {
            "global_daily": _dimension(
                budget_config.global_daily, self.current_spend(GLOBAL, DAILY, tenant_id=tenant_id)
            ),
            "global_monthly": _dimension(
                budget_config.global_monthly, self.current_spend(GLOBAL, MONTHLY, tenant_id=tenant_id)
            ),
        }
        if agent_type:
            for period in (DAILY, MONTHLY):
                limit = budget_config.cost_limit(AGENT, period, agent_type)
                current = self.current_spend(AGENT, period, agent_type, tenant_id) if limit is not None else 0.0
                dimensions[f"per_agent_{period}"] = _dimension(limit, current)
        for period in (DAILY, MONTHLY):
            dimensions[f"global_{period}_tokens"] = _dimension(
                budget_config.token_limit(period), self.current_tokens(period, tenant_id), digits=None
            )
            dimensions[f"global_{period}_executions"] = _dimension(
                budget_config.execution_limit(period), self.current_executions(period, tenant_id), digits=None
            )

        return BudgetStatus(
            tenant_id=tenant_id,
            enabled=budget_config.enabled,
            enforcement=budget_config.enforcement,
            dimensions={name: d for name, d in dimensions.items() if d is not None},
            forecast=self.forecaster.forecast(budget_config, tenant_id),
        )
