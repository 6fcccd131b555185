"""Atelier storage - JSON library store and versioned export documents."""

from atelier.storage.export import (
    export_results,
    export_test_run,
    import_results,
    import_test_run,
)
from atelier.storage.json_store import LibraryStore

__all__ = [
    "LibraryStore",
    "export_results",
    "export_test_run",
    "import_results",
    "import_test_run",
]
