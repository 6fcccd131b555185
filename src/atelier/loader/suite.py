"""Suite files: templates, test cases and variable sets in one YAML document.

A suite looks like::

    provider: openai
    model: gpt-4o-mini
    evaluate_quality: true
    templates:
      - name: support
        content: "You are a {{tone}} support agent."
        variables:
          tone: [friendly, formal]
    test_cases:
      - name: refund
        user_prompt: "How do I get a refund?"
        expected_behavior: "Explain the refund policy and next steps"

Each template expands over the Cartesian product of its variable sets
into one PromptTemplate per combination. Validation collects every
error at once, each with the source line it points to.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from atelier.models.prompt import PromptTemplate, TestCase
from atelier.prompts.variables import extract_variable_keys, generate_variations

logger = logging.getLogger(__name__)


class SuiteTemplate(BaseModel):
    """A template entry; variables maps placeholder key -> candidate values."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1)
    content: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    variables: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("variables")
    @classmethod
    def _valid_variables(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        # Placeholders match keys after trimming, so " tone" and "tone" collide
        seen: set[str] = set()
        for key, candidates in value.items():
            name = key.strip()
            if not name:
                raise ValueError("variable keys must not be empty")
            if name in seen:
                raise ValueError(f"duplicate variable key {name!r}")
            seen.add(name)
            if not candidates:
                raise ValueError(f"variable {key!r} needs at least one value")
        return value


class SuiteTestCase(BaseModel):
    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1)
    user_prompt: str
    expected_behavior: str | None = None
    tags: list[str] = Field(default_factory=list)


class Suite(BaseModel):
    """A whole suite file. provider/model fall back to atelier.yaml."""

    model_config = {"extra": "forbid"}

    provider: str | None = None
    model: str | None = None
    evaluate_quality: bool | None = None
    templates: list[SuiteTemplate] = Field(min_length=1)
    test_cases: list[SuiteTestCase] = Field(min_length=1)

    def expand_templates(self) -> list[PromptTemplate]:
        """One PromptTemplate per template x variable combination.

        Variant names carry their assignment, e.g. ``support [tone=formal]``.
        """
        expanded: list[PromptTemplate] = []
        for entry in self.templates:
            unused = set(entry.variables) - set(extract_variable_keys(entry.content))
            if unused:
                logger.warning(
                    "Template %r defines unused variables: %s",
                    entry.name, ", ".join(sorted(unused)),
                )

            for variation in generate_variations(entry.content, entry.variables):
                name = entry.name
                if variation.variables:
                    label = ", ".join(f"{v.key}={v.value}" for v in variation.variables)
                    name = f"{entry.name} [{label}]"
                expanded.append(
                    PromptTemplate(
                        name=name,
                        content=variation.prompt,
                        description=entry.description,
                        tags=list(entry.tags),
                        source="file",
                    )
                )
        return expanded

    def build_test_cases(self) -> list[TestCase]:
        return [
            TestCase(
                name=tc.name,
                user_prompt=tc.user_prompt,
                expected_behavior=tc.expected_behavior,
                tags=list(tc.tags),
            )
            for tc in self.test_cases
        ]


VALID_SUITE_FIELDS: list[str] = list(Suite.model_fields.keys())


@dataclass
class SuiteError:
    """One problem found in a suite file.

    Attributes:
        field: Dotted path of the offending field, or '<yaml>'.
        message: Human-readable description.
        type: Pydantic error type, or 'yaml_syntax_error' / 'empty_file'.
        line: 1-indexed source line, or None if unknown.
        suggestion: 'Did you mean X?' for mistyped top-level keys.
    """

    field: str
    message: str
    type: str
    line: int | None = None
    suggestion: str | None = None

    def format(self, filename: str) -> str:
        location = f"{filename}:{self.line}" if self.line is not None else filename
        text = f"{location} -- {self.field}: {self.message}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text


def _collect_lines(node: yaml.Node, prefix: str, lines: dict[str, int]) -> None:
    """Record the 1-indexed line of every mapping key and list item under node."""
    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            path = f"{prefix}.{key_node.value}" if prefix else str(key_node.value)
            lines[path] = key_node.start_mark.line + 1
            _collect_lines(value_node, path, lines)
    elif isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            path = f"{prefix}.{index}" if prefix else str(index)
            lines[path] = item.start_mark.line + 1
            _collect_lines(item, path, lines)


def _line_for(path: str, lines: dict[str, int]) -> int | None:
    parts = path.split(".")
    while parts:
        candidate = ".".join(parts)
        if candidate in lines:
            return lines[candidate]
        parts.pop()
    return None


def parse_suite(source: str) -> tuple[Suite | None, list[SuiteError]]:
    """Parse and validate suite YAML.

    Returns:
        (Suite, []) on success, or (None, errors) listing every problem.
    """
    try:
        root = yaml.compose(source, Loader=yaml.SafeLoader)
        data = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        return None, [
            SuiteError(
                field="<yaml>",
                message=str(exc),
                type="yaml_syntax_error",
                line=mark.line + 1 if mark is not None else None,
            )
        ]

    if root is None or data is None:
        return None, [
            SuiteError(
                field="<yaml>",
                message="File is empty or contains only comments",
                type="empty_file",
            )
        ]
    if not isinstance(data, dict):
        return None, [
            SuiteError(
                field="<yaml>",
                message="Suite must be a mapping at the top level",
                type="type_error",
                line=1,
            )
        ]

    lines: dict[str, int] = {}
    _collect_lines(root, "", lines)

    try:
        return Suite.model_validate(data), []
    except PydanticValidationError as exc:
        errors: list[SuiteError] = []
        for err in exc.errors():
            loc = err.get("loc", ())
            path = ".".join(str(part) for part in loc)
            error_type = err.get("type", "unknown")
            suggestion = None
            if error_type == "extra_forbidden" and len(loc) == 1:
                matches = difflib.get_close_matches(
                    str(loc[0]), VALID_SUITE_FIELDS, n=1, cutoff=0.6
                )
                if matches:
                    suggestion = f"Did you mean '{matches[0]}'?"
            errors.append(
                SuiteError(
                    field=path,
                    message=err.get("msg", "Validation error"),
                    type=error_type,
                    line=_line_for(path, lines),
                    suggestion=suggestion,
                )
            )
        return None, errors


def load_suite(path: Path) -> tuple[Suite | None, list[SuiteError]]:
    """Read and validate a suite file.

    Raises:
        FileNotFoundError: If path does not exist.
    """
    return parse_suite(path.read_text(encoding="utf-8"))
