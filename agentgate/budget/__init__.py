"""Budget accounting: limits, counters, status and enforcement.

This module provides:
- BudgetConfig / TenantBudget: resolved limits and raw tenant records
- SpendRecorder: counter increments and cap alerts
- BudgetQuery / Forecaster: current usage, remaining budget, projections
- BudgetTracker: pre-flight checks and post-flight recording
"""

from agentgate.budget.config import (
    AGENT,
    DAILY,
    GLOBAL,
    MONTHLY,
    BudgetConfig,
    InMemoryTenantBudgetStore,
    TenantBudget,
    TenantBudgetStore,
)
from agentgate.budget.forecast import Forecaster
from agentgate.budget.keys import BudgetKeys
from agentgate.budget.query import UNLIMITED, BudgetQuery, BudgetStatus, DimensionStatus
from agentgate.budget.recorder import SpendRecorder
from agentgate.budget.resolver import ConfigResolver
from agentgate.budget.tracker import BudgetTracker

__all__ = [
    "AGENT",
    "DAILY",
    "GLOBAL",
    "MONTHLY",
    "UNLIMITED",
    "BudgetConfig",
    "BudgetKeys",
    "BudgetQuery",
    "BudgetStatus",
    "BudgetTracker",
    "ConfigResolver",
    "DimensionStatus",
    "Forecaster",
    "InMemoryTenantBudgetStore",
    "SpendRecorder",
    "TenantBudget",
    "TenantBudgetStore",
]
