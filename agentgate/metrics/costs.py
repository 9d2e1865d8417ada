"""Cost calculation utilities."""

from typing import Mapping, Optional

from pydantic import BaseModel, Field

from agentgate.models import TokenUsage


class ModelPricing(BaseModel):
    """USD price per 1M tokens."""

    input: float = Field(default=0.0, ge=0)
    output: float = Field(default=0.0, ge=0)


class CostBreakdown(BaseModel):
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0


# Model pricing (per 1M tokens, input/output)
DEFAULT_PRICING: dict[str, ModelPricing] = {
    # Anthropic
    "claude-opus": ModelPricing(input=15.0, output=75.0),
    "claude-sonnet": ModelPricing(input=3.0, output=15.0),
    "claude-haiku": ModelPricing(input=0.25, output=1.25),
    # OpenAI
    "gpt-4o": ModelPricing(input=2.5, output=10.0),
    "gpt-4o-mini": ModelPricing(input=0.15, output=0.6),
    "gpt-4-turbo": ModelPricing(input=10.0, output=30.0),
    # Google
    "gemini-pro": ModelPricing(input=0.5, output=1.5),
    "gemini-flash": ModelPricing(input=0.075, output=0.3),
}


def calculate_cost(tokens: TokenUsage, pricing: Optional[ModelPricing]) -> CostBreakdown:
    """Calculate cost in USD for given token usage. Unknown pricing costs nothing."""
    if pricing is None:
        return CostBreakdown()
    input_cost = round((tokens.input_tokens / 1_000_000) * pricing.input, 6)
    output_cost = round((tokens.output_tokens / 1_000_000) * pricing.output, 6)
    return CostBreakdown(
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=round(input_cost + output_cost, 6),
    )


def estimate_cost(
    pricing_table: Mapping[str, ModelPricing],
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> float:
    """Estimate the cost of a call before it is made."""
    tokens = TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)
    return calculate_cost(tokens, pricing_table.get(model)).total_cost


def format_cost(cost_usd: float) -> str:
    """Format cost as a readable string."""
    if cost_usd < 0.01:
        return f"${cost_usd:.4f}"
    return f"${cost_usd:.2f}"
