"""Store key scheme for spend, token, execution and alert counters.

Keys embed the calendar period, so a new day or month produces a new key
and counters roll over without any reset logic:

    <ns>:budget:<tenant>:<date>
    <ns>:budget:<tenant>:agent:<agent_type>:<date>
    <ns>:tokens:<tenant>:<date>
    <ns>:executions:<tenant>:<date>
    <ns>:<alert_type>:<tenant>:<scope>:<iso-day>

``<tenant>`` is ``tenant:<id>`` or ``global``; ``<date>`` is the ISO day
for daily counters and ``YYYY-MM`` for monthly ones.
"""

from datetime import datetime
from typing import Optional

from agentgate.budget.config import AGENT, DAILY, GLOBAL
from agentgate.clock import Clock, utc_now
from agentgate.store import build_key

DAILY_TTL = 24 * 60 * 60
MONTHLY_TTL = 31 * 24 * 60 * 60
ALERT_TTL = 60 * 60


def period_ttl(period: str) -> int:
    return DAILY_TTL if period == DAILY else MONTHLY_TTL


class BudgetKeys:
    def __init__(self, namespace: str, clock: Clock = utc_now):
        self.namespace = namespace
        self.clock = clock

    @staticmethod
    def tenant_part(tenant_id: Optional[str]) -> str:
        return f"tenant:{tenant_id}" if tenant_id else "global"

    def date_part(self, period: str, at: Optional[datetime] = None) -> str:
        now = at or self.clock()
        return now.date().isoformat() if period == DAILY else now.strftime("%Y-%m")

    def spend(
        self,
        scope: str,
        period: str,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> str:
        tenant = self.tenant_part(tenant_id)
        date = self.date_part(period, at)
        if scope == GLOBAL:
            return build_key(self.namespace, "budget", tenant, date)
        if scope == AGENT:
            if not agent_type:
                raise ValueError("agent_type required for agent-scoped spend")
            return build_key(self.namespace, "budget", tenant, "agent", agent_type, date)
        raise ValueError(f"Unknown scope: {scope}")

    def tokens(self, period: str, tenant_id: Optional[str] = None, at: Optional[datetime] = None) -> str:
        return build_key(self.namespace, "tokens", self.tenant_part(tenant_id), self.date_part(period, at))

    def executions(self, period: str, tenant_id: Optional[str] = None, at: Optional[datetime] = None) -> str:
        return build_key(self.namespace, "executions", self.tenant_part(tenant_id), self.date_part(period, at))

    def alert(self, alert_type: str, scope: str, tenant_id: Optional[str] = None) -> str:
        return build_key(
            self.namespace,
            alert_type,
            self.tenant_part(tenant_id),
            scope,
            self.clock().date().isoformat(),
        )
