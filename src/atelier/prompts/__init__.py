"""Prompt variable engine - placeholder extraction, substitution and variations."""

from atelier.prompts.variables import (
    COMMON_VARIABLE_PRESETS,
    VariableValidation,
    Variation,
    check_variable_set,
    extract_variable_keys,
    generate_variations,
    substitute,
    validate_variables,
)

__all__ = [
    "COMMON_VARIABLE_PRESETS",
    "VariableValidation",
    "Variation",
    "check_variable_set",
    "extract_variable_keys",
    "generate_variations",
    "substitute",
    "validate_variables",
]
