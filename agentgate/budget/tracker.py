"""Budget coordinator: pre-flight checks and post-flight recording.

Usage:
    tracker = BudgetTracker(resolver, recorder, query)

    budget_config = tracker.check_budget("SummaryAgent", tenant_id="acme")  # raises if over
    ...
    tracker.record_usage("SummaryAgent", "acme", budget_config, cost=0.42, tokens=1800)
"""

from dataclasses import dataclass
from typing import Optional

from agentgate.budget.config import AGENT, DAILY, GLOBAL, MONTHLY, BudgetConfig
from agentgate.budget.query import BudgetQuery, BudgetStatus
from agentgate.budget.recorder import COST_ALERT, EXECUTION_ALERT, TOKEN_ALERT, SpendRecorder
from agentgate.budget.resolver import ConfigResolver, TenantConfigSource
from agentgate.errors import BudgetExceededError
from agentgate.logging import get_logger
from agentgate.models import EnforcementMode

logger = get_logger(__name__)


@dataclass
class Breach:
    scope: str
    alert_type: str
    limit: float
    current: float


class BudgetTracker:
    """Checks budgets before a call and records usage after it.

    The check and the record are not one transaction: two concurrent calls
    can both pass a check that would fail had they run one after the
    other. Hard enforcement is therefore best-effort.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        recorder: SpendRecorder,
        query: BudgetQuery,
    ):
        self.resolver = resolver
        self.recorder = recorder
        self.query = query

    def resolve(self, tenant_id: Optional[str], runtime_override: TenantConfigSource = None) -> BudgetConfig:
        return self.resolver.resolve(tenant_id, runtime_override)

    def check_budget(
        self,
        agent_type: str,
        tenant_id: Optional[str] = None,
        runtime_override: TenantConfigSource = None,
        estimated_cost: float = 0.0,
    ) -> BudgetConfig:
        """Check every configured limit for the tenant.

        Returns the resolved BudgetConfig so the caller can record against
        the same snapshot after the call.

        Raises:
            BudgetExceededError: Under hard enforcement, for the first breached limit
        """
        tenant_id = self.resolver.resolve_tenant_id(tenant_id)
        budget_config = self.resolve(tenant_id, runtime_override)
        if not budget_config.enabled or budget_config.enforcement == EnforcementMode.NONE:
            return budget_config

        breaches = self.find_breaches(agent_type, tenant_id, budget_config, estimated_cost)
        if not breaches:
            return budget_config

        first = breaches[0]
        if budget_config.is_hard:
            logger.warning(
                "budget_hard_cap_exceeded",
                agent_type=agent_type,
                tenant_id=tenant_id,
                scope=first.scope,
                limit=first.limit,
                current=first.current,
                estimated_cost=estimated_cost,
            )
            self.recorder.alert_once(
                first.alert_type, first.scope, first.limit, first.current,
                agent_type, tenant_id, budget_config,
            )
            raise BudgetExceededError(
                scope=first.scope,
                limit=first.limit,
                current=first.current,
                agent_type=agent_type,
                tenant_id=tenant_id,
            )

        for breach in breaches:
            logger.warning(
                "budget_soft_cap_exceeded",
                agent_type=agent_type,
                tenant_id=tenant_id,
                scope=breach.scope,
                limit=breach.limit,
                current=breach.current,
            )
        self.recorder.alert_once(
            first.alert_type, first.scope, first.limit, first.current,
            agent_type, tenant_id, budget_config,
        )
        return budget_config

    def find_breaches(
        self,
        agent_type: str,
        tenant_id: Optional[str],
        budget_config: BudgetConfig,
        estimated_cost: float = 0.0,
    ) -> list[Breach]:
        """List reached limits in check order.

        A limit is reached when ``current >= limit``. For cost limits a
        positive estimate also breaches when ``current + estimate > limit``.
        """
        breaches: list[Breach] = []
        estimate = max(estimated_cost or 0.0, 0.0)

        cost_dimensions = [
            ("global_daily", GLOBAL, DAILY),
            ("global_monthly", GLOBAL, MONTHLY),
            ("per_agent_daily", AGENT, DAILY),
            ("per_agent_monthly", AGENT, MONTHLY),
        ]
        for scope, dimension_scope, period in cost_dimensions:
            limit = budget_config.cost_limit(dimension_scope, period, agent_type)
            if limit is None:
                continue
            current = self.query.current_spend(dimension_scope, period, agent_type, tenant_id)
            if current >= limit or (estimate > 0 and current + estimate > limit):
                breaches.append(Breach(scope, COST_ALERT, limit, current))

        for period in (DAILY, MONTHLY):
            limit = budget_config.token_limit(period)
            if limit is not None:
                current = self.query.current_tokens(period, tenant_id)
                if current >= limit:
                    breaches.append(Breach(f"global_{period}_tokens", TOKEN_ALERT, limit, current))

        for period in (DAILY, MONTHLY):
            limit = budget_config.execution_limit(period)
            if limit is not None:
                current = self.query.current_executions(period, tenant_id)
                if current >= limit:
                    breaches.append(Breach(f"global_{period}_executions", EXECUTION_ALERT, limit, current))

        return breaches

    def record_usage(
        self,
        agent_type: str,
        tenant_id: Optional[str],
        budget_config: BudgetConfig,
        cost: Optional[float] = None,
        tokens: Optional[int] = None,
    ) -> None:
        tenant_id = self.resolver.resolve_tenant_id(tenant_id)
        self.recorder.record_spend(agent_type, cost, tenant_id, budget_config)
        self.recorder.record_tokens(agent_type, tokens, tenant_id, budget_config)
        self.recorder.record_execution(agent_type, tenant_id, budget_config)

    def status(
        self,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
        runtime_override: TenantConfigSource = None,
    ) -> BudgetStatus:
        tenant_id = self.resolver.resolve_tenant_id(tenant_id)
        budget_config = self.resolve(tenant_id, runtime_override)
        return self.query.status(budget_config, agent_type=agent_type, tenant_id=tenant_id)
