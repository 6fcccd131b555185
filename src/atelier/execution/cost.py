"""Cost estimation from token usage and model pricing.

Provides a static pricing table for the catalog models and a function
to estimate the USD cost of a single completion from its token counts.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPricing:
    """Pricing per million tokens for a single model."""

    input_per_million: float
    output_per_million: float

    def cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        return (
            prompt_tokens * self.input_per_million
            + completion_tokens * self.output_per_million
        ) / 1_000_000


# Prices are in USD per million tokens.
PRICING_TABLE: dict[str, ModelPricing] = {
    # OpenAI models
    "gpt-4o": ModelPricing(input_per_million=2.50, output_per_million=10.00),
    "gpt-4o-mini": ModelPricing(input_per_million=0.15, output_per_million=0.60),
    "gpt-4-turbo": ModelPricing(input_per_million=10.00, output_per_million=30.00),
    "gpt-4": ModelPricing(input_per_million=30.00, output_per_million=60.00),
    # Anthropic models
    "claude-sonnet-4": ModelPricing(input_per_million=3.00, output_per_million=15.00),
    "claude-sonnet-4-5": ModelPricing(input_per_million=3.00, output_per_million=15.00),
    "claude-haiku-4-5": ModelPricing(input_per_million=1.00, output_per_million=5.00),
    "claude-3-5-sonnet": ModelPricing(input_per_million=3.00, output_per_million=15.00),
    "claude-3-5-haiku": ModelPricing(input_per_million=0.80, output_per_million=4.00),
    "claude-3-opus": ModelPricing(input_per_million=15.00, output_per_million=75.00),
    "claude-3-haiku": ModelPricing(input_per_million=0.25, output_per_million=1.25),
}

# Aliases for dated model versions that share pricing with their base model.
MODEL_ALIASES: dict[str, str] = {
    "claude-sonnet-4-20250514": "claude-sonnet-4",
    "claude-sonnet-4-5-20250929": "claude-sonnet-4-5",
    "claude-haiku-4-5-20251001": "claude-haiku-4-5",
    "claude-3-5-sonnet-20241022": "claude-3-5-sonnet",
    "claude-3-5-haiku-20241022": "claude-3-5-haiku",
    "claude-3-opus-20240229": "claude-3-opus",
    "claude-3-haiku-20240307": "claude-3-haiku",
}


def pricing_for(model: str) -> ModelPricing | None:
    """Look up a model, accepting dated snapshot names."""
    return PRICING_TABLE.get(MODEL_ALIASES.get(model, model))


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float | None:
    """USD cost of one completion rounded to six decimal places.

    Returns None for models without a price.
    """
    pricing = pricing_for(model)
    if pricing is None:
        return None
    return round(pricing.cost(prompt_tokens, completion_tokens), 6)
