"""Write side of budget accounting.

Every successful, non-cached call increments:
- four cost counters (global and per-agent, daily and monthly)
- two token counters (global only, daily and monthly)
- two execution counters (global only, daily and monthly)

After incrementing, the first configured limit that has been reached
produces at most one alert per (alert type, scope, tenant, day). The
marker key is written with ``unless_exist`` so concurrent breaches race
on the store, and exactly one writer wins the right to alert.
"""

from typing import Optional

from agentgate import alerts
from agentgate.alerts import AlertManager
from agentgate.budget.config import AGENT, DAILY, GLOBAL, MONTHLY, PERIODS, BudgetConfig
from agentgate.budget.keys import ALERT_TTL, BudgetKeys, period_ttl
from agentgate.logging import get_logger
from agentgate.store import Counter, CounterStore, counter_for

logger = get_logger(__name__)

COST_ALERT = "budget_alert"
TOKEN_ALERT = "token_alert"
EXECUTION_ALERT = "execution_alert"

_EVENTS = {
    COST_ALERT: (alerts.BUDGET_SOFT_CAP, alerts.BUDGET_HARD_CAP),
    TOKEN_ALERT: (alerts.TOKEN_SOFT_CAP, alerts.TOKEN_HARD_CAP),
    EXECUTION_ALERT: (alerts.EXECUTION_SOFT_CAP, alerts.EXECUTION_HARD_CAP),
}


def alert_event(alert_type: str, budget_config: BudgetConfig) -> str:
    soft, hard = _EVENTS[alert_type]
    return hard if budget_config.is_hard else soft


class SpendRecorder:
    """Increments spend/token/execution counters and raises cap alerts."""

    def __init__(
        self,
        store: CounterStore,
        keys: BudgetKeys,
        alert_manager: Optional[AlertManager] = None,
        counter: Optional[Counter] = None,
    ):
        self.store = store
        self.keys = keys
        self.alert_manager = alert_manager
        self.counter = counter or counter_for(store)

    def record_spend(
        self,
        agent_type: str,
        amount: Optional[float],
        tenant_id: Optional[str],
        budget_config: BudgetConfig,
    ) -> None:
        if amount is None or amount <= 0:
            return

        totals = {}
        for period in PERIODS:
            totals[(GLOBAL, period)] = self.counter.increment(
                self.keys.spend(GLOBAL, period, tenant_id=tenant_id), amount, period_ttl(period)
            )
            totals[(AGENT, period)] = self.counter.increment(
                self.keys.spend(AGENT, period, agent_type=agent_type, tenant_id=tenant_id),
                amount,
                period_ttl(period),
            )
        logger.debug("spend_recorded", agent_type=agent_type, tenant_id=tenant_id, amount=amount)

        if not budget_config.enabled:
            return
        checks = [
            ("global_daily", budget_config.global_daily, totals[(GLOBAL, DAILY)]),
            ("global_monthly", budget_config.global_monthly, totals[(GLOBAL, MONTHLY)]),
            ("per_agent_daily", budget_config.cost_limit(AGENT, DAILY, agent_type), totals[(AGENT, DAILY)]),
            ("per_agent_monthly", budget_config.cost_limit(AGENT, MONTHLY, agent_type), totals[(AGENT, MONTHLY)]),
        ]
        self._alert_first_breach(COST_ALERT, checks, agent_type, tenant_id, budget_config)

    def record_tokens(
        self,
        agent_type: str,
        tokens: Optional[int],
        tenant_id: Optional[str],
        budget_config: BudgetConfig,
    ) -> None:
        # Tokens are tracked tenant-wide only, never per agent
        if tokens is None or tokens <= 0:
            return

        totals = {
            period: self.counter.increment(self.keys.tokens(period, tenant_id), tokens, period_ttl(period))
            for period in PERIODS
        }

        if not budget_config.enabled:
            return
        checks = [
            ("global_daily_tokens", budget_config.global_daily_tokens, totals[DAILY]),
            ("global_monthly_tokens", budget_config.global_monthly_tokens, totals[MONTHLY]),
        ]
        self._alert_first_breach(TOKEN_ALERT, checks, agent_type, tenant_id, budget_config)

    def record_execution(
        self,
        agent_type: str,
        tenant_id: Optional[str],
        budget_config: BudgetConfig,
    ) -> None:
        totals = {
            period: self.counter.increment(self.keys.executions(period, tenant_id), 1, period_ttl(period))
            for period in PERIODS
        }

        if not budget_config.enabled:
            return
        checks = [
            ("global_daily_executions", budget_config.global_daily_executions, totals[DAILY]),
            ("global_monthly_executions", budget_config.global_monthly_executions, totals[MONTHLY]),
        ]
        self._alert_first_breach(EXECUTION_ALERT, checks, agent_type, tenant_id, budget_config)

    def _alert_first_breach(self, alert_type, checks, agent_type, tenant_id, budget_config) -> None:
        for scope, limit, current in checks:
            if limit is not None and current >= limit:
                self.alert_once(alert_type, scope, limit, current, agent_type, tenant_id, budget_config)
                return

    def alert_once(
        self,
        alert_type: str,
        scope: str,
        limit: float,
        current: float,
        agent_type: Optional[str],
        tenant_id: Optional[str],
        budget_config: BudgetConfig,
    ) -> bool:
        """Send a cap alert unless one went out for this scope today.

        Returns True when this call emitted the alert.
        """
        if self.alert_manager is None or not self.alert_manager.enabled:
            return False

        event = alert_event(alert_type, budget_config)
        if not self.alert_manager.wants(event):
            return False

        marker = self.keys.alert(alert_type, scope, tenant_id)
        if not self.store.write(marker, True, ttl=ALERT_TTL, unless_exist=True):
            return False

        self.alert_manager.notify(
            event,
            {
                "scope": scope,
                "limit": limit,
                "total": round(current, 6),
                "agent_type": agent_type,
                "tenant_id": tenant_id,
                "timestamp": self.keys.clock().isoformat(),
            },
        )
        return True
