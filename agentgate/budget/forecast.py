"""Project end-of-period spend from the current run rate."""

import calendar
from typing import TYPE_CHECKING, Any, Optional

from agentgate.budget.config import DAILY, GLOBAL, MONTHLY, BudgetConfig
from agentgate.clock import Clock

if TYPE_CHECKING:
    from agentgate.budget.query import BudgetQuery


class Forecaster:
    def __init__(self, query: "BudgetQuery", clock: Clock):
        self.query = query
        self.clock = clock

    def forecast(self, budget_config: BudgetConfig, tenant_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        """Linear projection of daily and monthly global spend.

        Returns None when budgets are disabled or no global cost limit is set.
        Elapsed time is floored at one hour / one day so early-period
        projections don't divide by zero.
        """
        if not budget_config.enabled:
            return None
        if budget_config.global_daily is None and budget_config.global_monthly is None:
            return None

        now = self.clock()
        hours_elapsed = max(now.hour + now.minute / 60.0, 1)
        days_in_month = calendar.monthrange(now.year, now.month)[1]
        days_elapsed = max(now.day - 1 + hours_elapsed / 24.0, 1)

        forecast: dict[str, Any] = {}

        if budget_config.global_daily is not None:
            current = self.query.current_spend(GLOBAL, DAILY, tenant_id=tenant_id)
            rate = current / hours_elapsed
            projected = rate * 24
            forecast["daily"] = {
                "current": round(current, 4),
                "projected": round(projected, 4),
                "limit": budget_config.global_daily,
                "on_track": projected <= budget_config.global_daily,
                "hours_remaining": round(24 - hours_elapsed, 1),
                "rate_per_hour": round(rate, 6),
            }

        if budget_config.global_monthly is not None:
            current = self.query.current_spend(GLOBAL, MONTHLY, tenant_id=tenant_id)
            rate = current / days_elapsed
            projected = rate * days_in_month
            forecast["monthly"] = {
                "current": round(current, 4),
                "projected": round(projected, 4),
                "limit": budget_config.global_monthly,
                "on_track": projected <= budget_config.global_monthly,
                "days_remaining": days_in_month - now.day,
                "rate_per_day": round(rate, 4),
            }

        return forecast
