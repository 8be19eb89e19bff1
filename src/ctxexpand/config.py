"""Configuration management for ctxexpand."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ctxexpand.context.models import AccessMode
from ctxexpand.exceptions import ConfigError

CTXEXPAND_DIR = ".ctxexpand"
CONFIG_FILE = "config.json"

# Share of the model window the expansion may fill, in characters per token:
# ~75% of the window in Full mode vs ~50% in Balanced mode.
_WINDOW_CHARS_PER_TOKEN = {
    AccessMode.FULL: 3,
    AccessMode.BALANCED: 2,
}


class ExpansionConfig(BaseModel):
    """Expansion behavior configuration."""

    access_mode: AccessMode = AccessMode.BALANCED
    model_token_limit: int = Field(default=32000, gt=0)
    deadline_seconds: float = Field(default=30.0, ge=0)  # 0 = no deadline
    no_truncation: bool = False

    @property
    def total_budget(self) -> int:
        return budget_for_model(self.model_token_limit, self.access_mode)


class StoreConfig(BaseModel):
    """Hierarchy store configuration."""

    db_file: str = "hierarchy.db"


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    expansion: ExpansionConfig = Field(default_factory=ExpansionConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)


def budget_for_model(token_limit: int, access_mode: AccessMode) -> int:
    """Total character budget for a model with a ``token_limit`` context window."""
    return max(0, token_limit) * _WINDOW_CHARS_PER_TOKEN[access_mode]


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .ctxexpand directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CTXEXPAND_DIR).is_dir():
            return current
        current = current.parent
    if (current / CTXEXPAND_DIR).is_dir():
        return current
    return None


def get_ctxexpand_dir(root: Path) -> Path:
    """Get the .ctxexpand directory for a project root."""
    return root / CTXEXPAND_DIR


def get_db_path(root: Path, config: ProjectConfig) -> Path:
    return get_ctxexpand_dir(root) / config.store.db_file


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .ctxexpand/config.json."""
    config_path = get_ctxexpand_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .ctxexpand/config.json."""
    cx_dir = get_ctxexpand_dir(root)
    cx_dir.mkdir(parents=True, exist_ok=True)
    config_path = cx_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'expansion.access_mode')."""
    parts = key.split(".")
    data = config.model_dump(mode="json")
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e

