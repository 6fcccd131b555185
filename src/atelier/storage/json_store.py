"""JSON file storage layer for the prompt library and run history.

Stores three collections as JSON arrays under .atelier/:

    .atelier/
        prompts.json        # PromptTemplate records
        test_cases.json     # TestCase records
        history.json        # TestRun records, newest first

Uses atomic writes (write to .tmp, then rename) to prevent corruption.
The batch engine never touches this module; callers load inputs from
here and pass them in explicitly.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from atelier.models.prompt import PromptTemplate, TestCase
from atelier.models.result import TestRun

logger = logging.getLogger(__name__)

COLLECTIONS: tuple[str, ...] = ("prompts", "test_cases", "history")
DEFAULT_HISTORY_LIMIT = 50

_PROMPTS = TypeAdapter(list[PromptTemplate])
_TEST_CASES = TypeAdapter(list[TestCase])
_HISTORY = TypeAdapter(list[TestRun])


class LibraryStore:
    """Persist prompt templates, test cases and run history as JSON files.

    get()/set() are the raw key-value capability over JSON-serializable
    lists; the typed methods build CRUD semantics on top of them.
    """

    def __init__(
        self,
        project_root: Path,
        storage_dir: str | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        effective_dir = storage_dir or ".atelier"
        self.atelier_dir = project_root / effective_dir
        self.history_limit = history_limit

    def ensure_dirs(self) -> None:
        """Create the .atelier/ directory."""
        self.atelier_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, collection: str) -> Path:
        if collection not in COLLECTIONS:
            raise ValueError(
                f"Unknown collection {collection!r}. Available: {list(COLLECTIONS)}"
            )
        return self.atelier_dir / f"{collection}.json"

    # -- Raw key-value capability --

    def get(self, collection: str) -> list[dict[str, Any]]:
        """Load a collection as a list of plain dicts (empty if absent)."""
        path = self._path(collection)
        if not path.exists():
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{path} does not contain a JSON array")
        return data

    def set(self, collection: str, items: list[dict[str, Any]]) -> None:
        """Replace a collection. Writes atomically."""
        self.ensure_dirs()
        path = self._path(collection)
        content = json.dumps(items, indent=2, ensure_ascii=False)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.rename(path)

    # -- Prompt templates --

    def list_prompts(self) -> list[PromptTemplate]:
        return _PROMPTS.validate_python(self.get("prompts"))

    def _save_prompts(self, prompts: list[PromptTemplate]) -> None:
        self.set("prompts", _PROMPTS.dump_python(prompts, mode="json"))

    def add_prompt(self, prompt: PromptTemplate) -> PromptTemplate:
        """Append a template to the library and return it."""
        prompts = self.list_prompts()
        prompts.append(prompt)
        self._save_prompts(prompts)
        return prompt

    def update_prompt(self, prompt_id: str, **updates: Any) -> PromptTemplate | None:
        """Apply field updates to one template and bump updated_at.

        Returns:
            The updated template, or None if no template has that id.
        """
        prompts = self.list_prompts()
        for i, prompt in enumerate(prompts):
            if prompt.id == prompt_id:
                updated = PromptTemplate.model_validate(
                    {
                        **prompt.model_dump(),
                        **updates,
                        "id": prompt.id,
                        "updated_at": datetime.now(timezone.utc),
                    }
                )
                prompts[i] = updated
                self._save_prompts(prompts)
                return updated
        return None

    def delete_prompt(self, prompt_id: str) -> bool:
        """Delete a template. Returns True if it existed."""
        prompts = self.list_prompts()
        remaining = [p for p in prompts if p.id != prompt_id]
        if len(remaining) == len(prompts):
            return False
        self._save_prompts(remaining)
        return True

    def get_prompt(self, prompt_id: str) -> PromptTemplate | None:
        return next((p for p in self.list_prompts() if p.id == prompt_id), None)

    def import_prompt_file(self, path: Path) -> PromptTemplate:
        """Add a .txt/.md file's content to the library as a template."""
        content = path.read_text(encoding="utf-8")
        name = path.stem if path.suffix in (".txt", ".md") else path.name
        return self.add_prompt(
            PromptTemplate(
                name=name,
                content=content,
                source="file",
                description=f"Imported from {path.name}",
            )
        )

    # -- Test cases --

    def list_test_cases(self) -> list[TestCase]:
        return _TEST_CASES.validate_python(self.get("test_cases"))

    def _save_test_cases(self, test_cases: list[TestCase]) -> None:
        self.set("test_cases", _TEST_CASES.dump_python(test_cases, mode="json"))

    def add_test_case(self, test_case: TestCase) -> TestCase:
        test_cases = self.list_test_cases()
        test_cases.append(test_case)
        self._save_test_cases(test_cases)
        return test_case

    def update_test_case(self, test_case_id: str, **updates: Any) -> TestCase | None:
        """Apply field updates to one test case; None if the id is unknown."""
        test_cases = self.list_test_cases()
        for i, test_case in enumerate(test_cases):
            if test_case.id == test_case_id:
                updated = TestCase.model_validate(
                    {**test_case.model_dump(), **updates, "id": test_case.id}
                )
                test_cases[i] = updated
                self._save_test_cases(test_cases)
                return updated
        return None

    def delete_test_case(self, test_case_id: str) -> bool:
        test_cases = self.list_test_cases()
        remaining = [tc for tc in test_cases if tc.id != test_case_id]
        if len(remaining) == len(test_cases):
            return False
        self._save_test_cases(remaining)
        return True

    # -- Run history --

    def list_runs(self) -> list[TestRun]:
        """All saved runs, newest first."""
        return _HISTORY.validate_python(self.get("history"))

    def _save_runs(self, runs: list[TestRun]) -> None:
        if len(runs) > self.history_limit:
            logger.debug("Evicting %d oldest run(s)", len(runs) - self.history_limit)
        limited = runs[: self.history_limit]
        self.set("history", _HISTORY.dump_python(limited, mode="json"))

    def add_run(self, run: TestRun) -> TestRun:
        """Insert a run at the front; the oldest runs past the cap are evicted."""
        self._save_runs([run, *self.list_runs()])
        return run

    def get_run(self, run_id: str) -> TestRun | None:
        return next((r for r in self.list_runs() if r.id == run_id), None)

    def delete_run(self, run_id: str) -> bool:
        """Delete a whole run record. Returns True if it existed."""
        runs = self.list_runs()
        remaining = [r for r in runs if r.id != run_id]
        if len(remaining) == len(runs):
            return False
        self._save_runs(remaining)
        return True

    def clear_history(self) -> None:
        self._save_runs([])
