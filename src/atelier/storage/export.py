"""Versioned JSON export and import of runs and result sets.

An export document wraps its payload in an envelope:

    {
      "schema_version": 1,
      "kind": "test_run" | "results",
      "exported_at": "<ISO-8601 UTC>",
      "data": {...} | [...]
    }

Importing checks kind and version, then validates the payload back
into models equal to the ones exported.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from atelier.errors import ValidationError
from atelier.models.result import BatchTestResult, TestRun

SCHEMA_VERSION = 1

KIND_TEST_RUN = "test_run"
KIND_RESULTS = "results"

_RESULTS = TypeAdapter(list[BatchTestResult])


def _envelope(kind: str, data: Any) -> str:
    document = {
        "schema_version": SCHEMA_VERSION,
        "kind": kind,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def _unwrap(text: str, expected_kind: str) -> Any:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Export document is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise ValidationError("Export document must be a JSON object")

    version = document.get("schema_version")
    if version != SCHEMA_VERSION:
        raise ValidationError(
            f"Unsupported schema_version {version!r} (expected {SCHEMA_VERSION})"
        )

    kind = document.get("kind")
    if kind != expected_kind:
        raise ValidationError(f"Expected a {expected_kind!r} export, got {kind!r}")

    if "data" not in document:
        raise ValidationError("Export document has no 'data' field")
    return document["data"]


def export_test_run(run: TestRun) -> str:
    """Serialize a whole run as a pretty-printed export document."""
    return _envelope(KIND_TEST_RUN, run.model_dump(mode="json"))


def export_results(results: Sequence[BatchTestResult]) -> str:
    """Serialize a bare result list as a pretty-printed export document."""
    return _envelope(KIND_RESULTS, _RESULTS.dump_python(list(results), mode="json"))


def import_test_run(text: str) -> TestRun:
    """Parse an export_test_run() document back into a TestRun.

    Raises:
        ValidationError: Wrong kind or version, or an invalid payload.
    """
    data = _unwrap(text, KIND_TEST_RUN)
    try:
        return TestRun.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid test run payload: {exc}") from exc


def import_results(text: str) -> list[BatchTestResult]:
    """Parse an export_results() document back into results.

    Raises:
        ValidationError: Wrong kind or version, or an invalid payload.
    """
    data = _unwrap(text, KIND_RESULTS)
    try:
        return _RESULTS.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid results payload: {exc}") from exc
