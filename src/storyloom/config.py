"""Project configuration loading.

Settings come from ``storyloom.yaml`` in the project directory. Environment
variables override file values:

- ``STORYLOOM_STORY_ID``
- ``STORYLOOM_AUTOSAVE_DELAY`` (seconds, float)
- ``STORYLOOM_BACKEND`` (``memory`` or ``sqlite``)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from ruamel.yaml import YAML

from storyloom.errors import ConfigError
from storyloom.observability.logging import get_logger
from storyloom.persistence.sqlite_store import SqliteDocumentStore
from storyloom.persistence.store import DictDocumentStore

if TYPE_CHECKING:
    from storyloom.persistence.store import DocumentStore

log = get_logger(__name__)

CONFIG_FILENAME = "storyloom.yaml"

DEFAULT_STORY_ID = "threadr_project_main"
DEFAULT_AUTOSAVE_DELAY = 1.5
DEFAULT_DATABASE = "story.db"

Backend = Literal["memory", "sqlite"]
_BACKENDS: tuple[str, ...] = ("memory", "sqlite")


@dataclass
class StoryloomConfig:
    """Configuration for a storyloom project.

    Attributes:
        story_id: Story the editor works on.
        autosave_delay: Idle seconds before a dirty draft is committed.
        backend: Document store backend.
        database: SQLite file, relative to the project directory.
        seed_default_stats: Install the built-in stats when the remote
            catalog is empty.
        log_verbosity: Console log level. 0=WARNING, 1=INFO, 2+=DEBUG.
        log_file: JSONL log file, relative to the project directory.
            File logging is off when unset.
    """

    story_id: str = DEFAULT_STORY_ID
    autosave_delay: float = DEFAULT_AUTOSAVE_DELAY
    backend: Backend = "memory"
    database: str = DEFAULT_DATABASE
    seed_default_stats: bool = True
    log_verbosity: int = 0
    log_file: str | None = None

    def __post_init__(self) -> None:
        if self.backend not in _BACKENDS:
            msg = f"backend must be one of {', '.join(_BACKENDS)}, got {self.backend!r}"
            raise ValueError(msg)
        if self.autosave_delay < 0:
            raise ValueError(f"autosave_delay must be >= 0, got {self.autosave_delay}")
        if self.log_verbosity < 0:
            raise ValueError(f"log_verbosity must be >= 0, got {self.log_verbosity}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoryloomConfig:
        """Create config from a parsed YAML mapping.

        Unknown keys are ignored. Environment overrides are applied on top.
        """
        story = dict(data.get("story", {}) or {})
        storage = dict(data.get("storage", {}) or {})
        editor = dict(data.get("editor", {}) or {})
        logging_ = dict(data.get("logging", {}) or {})

        story_id = os.getenv("STORYLOOM_STORY_ID") or story.get("id", DEFAULT_STORY_ID)
        delay_env = os.getenv("STORYLOOM_AUTOSAVE_DELAY")
        autosave_delay = (
            float(delay_env)
            if delay_env
            else float(editor.get("autosave_delay", DEFAULT_AUTOSAVE_DELAY))
        )
        backend = os.getenv("STORYLOOM_BACKEND") or storage.get("backend", "memory")

        return cls(
            story_id=str(story_id),
            autosave_delay=autosave_delay,
            backend=backend,
            database=str(storage.get("database", DEFAULT_DATABASE)),
            seed_default_stats=bool(story.get("seed_default_stats", True)),
            log_verbosity=int(logging_.get("verbosity", 0)),
            log_file=logging_.get("file"),
        )


def load_config(project_path: Path) -> StoryloomConfig:
    """Load configuration from ``storyloom.yaml``.

    Args:
        project_path: Path to the project root directory.

    Returns:
        StoryloomConfig instance.

    Raises:
        ConfigError: If the file is missing, empty or invalid.
    """
    config_path = project_path / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(config_path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ConfigError(config_path, "Empty file")

        config = StoryloomConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e

    log.debug("config_loaded", path=str(config_path), story=config.story_id)
    return config


def create_default_config(story_id: str = DEFAULT_STORY_ID) -> StoryloomConfig:
    """Create a configuration with default values (environment overrides applied)."""
    return StoryloomConfig.from_dict({"story": {"id": story_id}})


def create_document_store(config: StoryloomConfig, project_path: Path | None = None) -> DocumentStore:
    """Build the document store backend named by *config*.

    Args:
        config: Loaded configuration.
        project_path: Base directory for a relative SQLite database path.

    Returns:
        A DictDocumentStore or SqliteDocumentStore.
    """
    if config.backend == "sqlite":
        db_path = Path(config.database)
        if project_path is not None and not db_path.is_absolute():
            db_path = project_path / db_path
        return SqliteDocumentStore(db_path)
    return DictDocumentStore()


def resolve_log_file(config: StoryloomConfig, project_path: Path | None = None) -> Path | None:
    """Return the JSONL log path named by *config*, or None when file logging is off."""
    if not config.log_file:
        return None
    path = Path(config.log_file)
    if project_path is not None and not path.is_absolute():
        path = project_path / path
    return path
