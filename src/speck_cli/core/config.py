"""Project configuration helpers.

Reads the ``staging`` section of ``.speck/config.yaml``. Every key is
optional; anything left out falls back to the defaults below.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from ruamel.yaml import YAML

logger = logging.getLogger(__name__)

SPECK_DIR = ".speck"
CONFIG_FILENAME = "config.yaml"
HISTORY_FILENAME = "transformation-history.json"

DEFAULT_STAGING_DIR = ".speck/.transform-staging"

DEFAULT_PRODUCTION_ROOTS: dict[str, str] = {
    "scripts": ".speck/scripts",
    "commands": ".claude/commands",
    "agents": ".claude/agents",
    "skills": ".claude/skills",
}


class ConfigError(RuntimeError):
    """Raised when .speck/config.yaml cannot be parsed or validated."""


@dataclass
class StagingConfig:
    """Repository-relative locations used by the staging engine.

    Attributes:
        directory: Staging area holding one subdirectory per target version.
        production_roots: Category name -> production root directory.
    """

    directory: str = DEFAULT_STAGING_DIR
    production_roots: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PRODUCTION_ROOTS)
    )


def config_path(repo_root: Path) -> Path:
    return repo_root / SPECK_DIR / CONFIG_FILENAME


def history_path(repo_root: Path) -> Path:
    return repo_root / SPECK_DIR / HISTORY_FILENAME


def locate_project_root(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` (default: cwd) to the first directory with ``.speck/``."""
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / SPECK_DIR).is_dir():
            return candidate
    return None


def _validate_relative(key: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Invalid {key} in config.yaml: expected a non-empty path")
    path = PurePosixPath(value.strip())
    if path.is_absolute() or ".." in path.parts:
        raise ConfigError(
            f"Invalid {key} in config.yaml: {value!r} must be relative to the "
            "repository root and must not contain '..'"
        )
    return path.as_posix()


def _is_within(child: str, parent: str) -> bool:
    child_parts = PurePosixPath(child).parts
    parent_parts = PurePosixPath(parent).parts
    return child_parts[: len(parent_parts)] == parent_parts


def load_staging_config(repo_root: Path) -> StagingConfig:
    """Load the staging section from .speck/config.yaml."""
    config_file = config_path(repo_root)

    if not config_file.exists():
        logger.debug("Config file not found, using staging defaults: %s", config_file)
        return StagingConfig()

    yaml = YAML()
    yaml.preserve_quotes = True

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        raise ConfigError(f"Invalid YAML in {config_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {config_file}: expected a mapping at the top level")

    staging_data = data.get("staging") or {}
    if not staging_data:
        logger.info("No staging section in config.yaml")
        return StagingConfig()
    if not isinstance(staging_data, dict):
        raise ConfigError("Invalid staging section in config.yaml: expected a mapping")

    config = StagingConfig()
    if "directory" in staging_data:
        config.directory = _validate_relative("staging.directory", staging_data["directory"])

    roots = staging_data.get("production_roots") or {}
    if not isinstance(roots, dict):
        raise ConfigError(
            "Invalid staging.production_roots in config.yaml: expected a mapping"
        )
    unknown = sorted(set(roots) - set(DEFAULT_PRODUCTION_ROOTS))
    if unknown:
        valid = ", ".join(DEFAULT_PRODUCTION_ROOTS)
        raise ConfigError(
            f"Unknown staging category in config.yaml: {', '.join(unknown)}. "
            f"Valid categories: {valid}"
        )
    for category, value in roots.items():
        config.production_roots[category] = _validate_relative(
            f"staging.production_roots.{category}", value
        )

    for category, root in config.production_roots.items():
        if _is_within(root, config.directory) or _is_within(config.directory, root):
            raise ConfigError(
                f"Production root for {category} ({root}) overlaps the staging "
                f"directory ({config.directory})"
            )

    return config


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_PRODUCTION_ROOTS",
    "DEFAULT_STAGING_DIR",
    "HISTORY_FILENAME",
    "SPECK_DIR",
    "StagingConfig",
    "config_path",
    "history_path",
    "load_staging_config",
    "locate_project_root",
]
