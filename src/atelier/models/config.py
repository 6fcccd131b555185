"""Project configuration model for Atelier.

Captures atelier.yaml fields with sensible defaults for
project-level settings like provider, model, storage and rate limits.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

CONFIG_FILENAME = "atelier.yaml"


class RateLimitConfig(BaseModel):
    """Request budget the SDK providers apply before each call.

    Off by default. When enabled, the CLI waits for budget instead of
    failing the pair, so a large batch runs at the configured pace.
    """

    model_config = {"extra": "forbid"}

    enabled: bool = False
    # "<count>/<period>", e.g. "20/minute" or "100/5minutes"
    limit: str = "20/minute"

    @field_validator("limit")
    @classmethod
    def _parseable(cls, value: str) -> str:
        from atelier.adapters.boundary import parse_rate_limit

        parse_rate_limit(value)
        return value


class ProjectConfig(BaseModel):
    """Project-level configuration loaded from atelier.yaml."""

    model_config = {"extra": "forbid"}

    default_provider: str = "openai"
    default_model: str | None = None
    storage_dir: str = ".atelier"
    history_limit: int = Field(default=50, ge=1)
    evaluate_quality: bool = True
    max_parallel: int = Field(default=1, ge=1)
    max_retries: int = Field(default=0, ge=0, le=10)
    # provider name -> proxy URL, used by the "http" provider
    endpoints: dict[str, str] = Field(default_factory=dict)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for atelier.yaml or .atelier/.

    Args:
        start: Starting path (file or directory). Defaults to cwd.

    Returns:
        Path to the project root directory containing atelier.yaml or
        .atelier/, or cwd if neither is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists() or (current / ".atelier").exists():
            return current
        current = current.parent
    return Path.cwd()


def load_project_config(project_root: Path | None = None) -> ProjectConfig:
    """Load ProjectConfig from atelier.yaml. Returns defaults if not found.

    Args:
        project_root: Path to the project root directory. If None,
            uses find_project_root() to locate it.

    Returns:
        Validated ProjectConfig instance.
    """
    if project_root is None:
        project_root = find_project_root()
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return ProjectConfig()
    import yaml

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if raw is None:
        return ProjectConfig()
    return ProjectConfig.model_validate(raw)
