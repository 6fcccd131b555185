"""Provider registry for resolving provider names to classes.

Supports both builtin provider names ("openai", "anthropic", "http")
and custom dotted-path imports (e.g., "my.module.MyProvider").
"""

from __future__ import annotations

import importlib
from typing import Any

from atelier.adapters.base import BaseProvider

# Mapping of builtin provider short names to their fully-qualified class paths.
# These providers are lazily imported -- SDK providers need their SDK installed.
BUILTIN_PROVIDERS: dict[str, str] = {
    "openai": "atelier.adapters.openai_adapter.OpenAIProvider",
    "anthropic": "atelier.adapters.anthropic_adapter.AnthropicProvider",
    "http": "atelier.adapters.http_adapter.HTTPStreamProvider",
}

# Maps builtin names to their pip install extras for helpful error messages.
_INSTALL_HINTS: dict[str, str] = {
    "openai": "pip install atelier-eval[openai]",
    "anthropic": "pip install atelier-eval[anthropic]",
}


def get_provider(name: str, **kwargs: Any) -> BaseProvider:
    """Resolve a provider by name or dotted path and return an instance.

    Args:
        name: A builtin provider name or a fully-qualified dotted path
              to a BaseProvider subclass.
        **kwargs: Passed to the provider constructor (e.g. ``endpoint``
              for "http", ``rate_limiter`` for the SDK providers).

    Returns:
        An instance of the resolved provider class.

    Raises:
        ValueError: If the name is not a builtin and has no dots (unknown).
        ImportError: If the module cannot be imported (e.g., missing SDK).
        TypeError: If the resolved class is not a subclass of BaseProvider.
    """
    if name in BUILTIN_PROVIDERS:
        dotted_path = BUILTIN_PROVIDERS[name]
    elif "." in name:
        dotted_path = name
    else:
        available = ", ".join(sorted(BUILTIN_PROVIDERS.keys()))
        raise ValueError(
            f"Unknown provider '{name}'. "
            f"Available builtin providers: {available}. "
            f"For custom providers, provide the full dotted path "
            f"(e.g., 'my.module.MyProvider')."
        )

    module_path, _, class_name = dotted_path.rpartition(".")
    if not module_path or not class_name:
        raise ValueError(
            f"Invalid provider path '{dotted_path}'. "
            f"Expected format: 'module.path.ClassName'."
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        if name in _INSTALL_HINTS:
            raise ImportError(
                f"Provider '{name}' requires the {name} package. "
                f"Install it: {_INSTALL_HINTS[name]}"
            ) from exc
        raise

    try:
        cls = getattr(module, class_name)
    except AttributeError:
        raise ImportError(
            f"Module '{module_path}' has no attribute '{class_name}'."
        ) from None

    if not isinstance(cls, type) or not issubclass(cls, BaseProvider):
        raise TypeError(
            f"'{dotted_path}' is not a subclass of BaseProvider. "
            f"Custom providers must inherit from atelier.adapters.base.BaseProvider."
        )

    return cls(**kwargs)
