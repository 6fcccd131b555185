"""Template variables: ``{{key}}`` extraction, substitution and variations.

Placeholders are ``{{`` + any run of non-``}`` characters + ``}}``. Keys are
compared after trimming, so ``{{ name }}`` and ``{{name}}`` are the same
variable. Substitution leaves unknown placeholders untouched.
"""

from __future__ import annotations

import itertools
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from atelier.errors import ValidationError
from atelier.models.prompt import PromptVariable

PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")


@dataclass
class VariableValidation:
    """Outcome of checking a template against a variable set."""

    valid: bool
    missing_variables: list[str] = field(default_factory=list)


@dataclass
class Variation:
    """One resolved template plus the assignment that produced it."""

    prompt: str
    variables: list[PromptVariable] = field(default_factory=list)


# Ready-made value lists for common variables.
COMMON_VARIABLE_PRESETS: dict[str, dict[str, object]] = {
    "tone": {
        "key": "tone",
        "description": "The tone of the response",
        "values": ["professional", "casual", "friendly", "formal", "enthusiastic"],
    },
    "role": {
        "key": "role",
        "description": "The role of the AI assistant",
        "values": ["software engineer", "teacher", "consultant", "analyst", "writer"],
    },
    "output_format": {
        "key": "output_format",
        "description": "The format of the output",
        "values": ["markdown", "JSON", "plain text", "bullet points", "numbered list"],
    },
    "detail_level": {
        "key": "detail_level",
        "description": "Level of detail in the response",
        "values": ["brief", "moderate", "detailed", "comprehensive"],
    },
}


def extract_variable_keys(template: str) -> list[str]:
    """Return the distinct placeholder keys in first-appearance order."""
    keys: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(template):
        key = match.group(1).strip()
        if key:
            keys.setdefault(key, None)
    return list(keys)


def check_variable_set(variables: Iterable[PromptVariable]) -> None:
    """Reject variable sets with empty or duplicate keys.

    Raises:
        ValidationError: If a key is blank or appears more than once.
    """
    seen: set[str] = set()
    for variable in variables:
        key = variable.key.strip()
        if not key:
            raise ValidationError("Variable key must not be empty")
        if key in seen:
            raise ValidationError(f"Duplicate variable key {key!r}")
        seen.add(key)


def substitute(template: str, variables: Sequence[PromptVariable]) -> str:
    """Replace every ``{{key}}`` that has a value; leave the rest verbatim.

    Values are inserted literally (no backreference expansion).
    """
    check_variable_set(variables)
    values = {v.key.strip(): v.value for v in variables}
    if not values:
        return template

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        return values.get(key, match.group(0))

    return PLACEHOLDER_RE.sub(_replace, template)


def validate_variables(
    template: str, variables: Sequence[PromptVariable]
) -> VariableValidation:
    """Check that every placeholder in template has a variable."""
    check_variable_set(variables)
    provided = {v.key.strip() for v in variables}
    missing = [key for key in extract_variable_keys(template) if key not in provided]
    return VariableValidation(valid=not missing, missing_variables=missing)


def generate_variations(
    template: str, variable_sets: Mapping[str, Sequence[str]]
) -> list[Variation]:
    """Expand template over the Cartesian product of candidate values.

    Keys are taken in mapping order and the last key varies fastest. An
    empty mapping yields the template unchanged with no variables; a key
    with no candidate values yields no variations at all.
    """
    keys = list(variable_sets)
    if not keys:
        return [Variation(prompt=template, variables=[])]

    variations: list[Variation] = []
    for combination in itertools.product(*(variable_sets[k] for k in keys)):
        assignment = [
            PromptVariable(key=key, value=value) for key, value in zip(keys, combination)
        ]
        variations.append(
            Variation(prompt=substitute(template, assignment), variables=assignment)
        )
    return variations
