"""Known completion models per provider.

Static metadata used by the CLI to list models and pick a default
when neither the command line nor atelier.yaml names one.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelInfo:
    """Catalog entry for one model."""

    id: str
    name: str
    provider: str
    description: str = ""
    context_window: int | None = None
    max_output: int | None = None


OPENAI_MODELS: list[ModelInfo] = [
    ModelInfo(
        id="gpt-4o",
        name="GPT-4o",
        provider="openai",
        description="Multimodal flagship model, faster and cheaper than GPT-4 Turbo",
        context_window=128000,
        max_output=16384,
    ),
    ModelInfo(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        provider="openai",
        description="Affordable small model for fast, lightweight tasks",
        context_window=128000,
        max_output=16384,
    ),
    ModelInfo(
        id="gpt-4-turbo",
        name="GPT-4 Turbo",
        provider="openai",
        description="Previous generation high-intelligence model",
        context_window=128000,
        max_output=4096,
    ),
    ModelInfo(
        id="gpt-4",
        name="GPT-4",
        provider="openai",
        description="Original GPT-4 model (legacy)",
        context_window=8192,
        max_output=8192,
    ),
]

ANTHROPIC_MODELS: list[ModelInfo] = [
    ModelInfo(
        id="claude-sonnet-4-20250514",
        name="Claude Sonnet 4",
        provider="anthropic",
        description="Most capable model with advanced reasoning and analysis",
        context_window=200000,
        max_output=8192,
    ),
    ModelInfo(
        id="claude-3-5-sonnet-20241022",
        name="Claude 3.5 Sonnet",
        provider="anthropic",
        description="Previous generation model, best for complex tasks",
        context_window=200000,
        max_output=8192,
    ),
    ModelInfo(
        id="claude-3-5-haiku-20241022",
        name="Claude 3.5 Haiku",
        provider="anthropic",
        description="Fast and compact model",
        context_window=200000,
        max_output=8192,
    ),
    ModelInfo(
        id="claude-3-opus-20240229",
        name="Claude 3 Opus",
        provider="anthropic",
        description="Previous generation most capable model",
        context_window=200000,
        max_output=4096,
    ),
    ModelInfo(
        id="claude-3-haiku-20240307",
        name="Claude 3 Haiku (Legacy)",
        provider="anthropic",
        description="Previous generation fast model",
        context_window=200000,
        max_output=4096,
    ),
]

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-20250514",
}

_CATALOG: dict[str, list[ModelInfo]] = {
    "openai": OPENAI_MODELS,
    "anthropic": ANTHROPIC_MODELS,
}


def get_models_for_provider(provider: str) -> list[ModelInfo]:
    """Models known for provider; empty for providers without a catalog."""
    return list(_CATALOG.get(provider, []))


def get_model_by_id(model_id: str) -> ModelInfo | None:
    for model in (*OPENAI_MODELS, *ANTHROPIC_MODELS):
        if model.id == model_id:
            return model
    return None


def default_model_for(provider: str) -> str | None:
    return DEFAULT_MODELS.get(provider)
