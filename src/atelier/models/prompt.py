"""Prompt library models: templates, test cases and template variables.

These models encode the user-editable inputs of a batch run. They live
independently of any run; results snapshot template and test case names
instead of referencing them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import ClassVar, Literal

from pydantic import BaseModel, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PromptVariable(BaseModel):
    """A single ``{{key}}`` assignment for a template."""

    model_config = {"extra": "forbid"}

    key: str
    value: str
    description: str | None = None


class PromptTemplate(BaseModel):
    """A reusable system prompt, possibly containing ``{{variable}}`` placeholders."""

    model_config = {"extra": "forbid"}

    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    content: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    source: Literal["manual", "file", "github"] = "manual"
    source_url: str | None = None


class TestCase(BaseModel):
    """A fixed user prompt with optional expected-behavior text.

    expected_behavior feeds the relevance heuristic only; it is not an
    assertion.
    """

    __test__: ClassVar[bool] = False

    model_config = {"extra": "forbid"}

    id: str = Field(default_factory=_new_id)
    name: str
    user_prompt: str
    expected_behavior: str | None = None
    tags: list[str] = Field(default_factory=list)
