"""Cost metrics."""

from agentgate.metrics.costs import (
    DEFAULT_PRICING,
    CostBreakdown,
    ModelPricing,
    calculate_cost,
    estimate_cost,
    format_cost,
)

__all__ = [
    "DEFAULT_PRICING",
    "CostBreakdown",
    "ModelPricing",
    "calculate_cost",
    "estimate_cost",
    "format_cost",
]
