"""Staging area layout and the category -> production root mapping."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from speck_cli.core.config import (
    DEFAULT_PRODUCTION_ROOTS,
    DEFAULT_STAGING_DIR,
    StagingConfig,
    load_staging_config,
)

from .errors import StagingValidationError
from .models import FileCategory

METADATA_FILENAME = "staging.json"


@dataclass(frozen=True)
class StagingLayout:
    """Explicit handle on the staging area and production roots of one repo.

    Every engine operation receives this instead of consulting a global
    staging directory; callers serialize access to it.
    """

    repo_root: Path
    staging_area: Path
    production_roots: dict[FileCategory, Path] = field(default_factory=dict)

    @classmethod
    def from_config(cls, repo_root: Path, config: StagingConfig) -> StagingLayout:
        root = Path(repo_root).resolve()
        return cls(
            repo_root=root,
            staging_area=root / config.directory,
            production_roots={
                FileCategory(name): root / rel
                for name, rel in config.production_roots.items()
            },
        )

    @classmethod
    def for_repo(cls, repo_root: Path) -> StagingLayout:
        """Build the layout from ``.speck/config.yaml`` (or the defaults)."""
        return cls.from_config(repo_root, load_staging_config(Path(repo_root)))

    @classmethod
    def default(cls, repo_root: Path) -> StagingLayout:
        return cls.from_config(
            repo_root,
            StagingConfig(
                directory=DEFAULT_STAGING_DIR,
                production_roots=dict(DEFAULT_PRODUCTION_ROOTS),
            ),
        )

    def production_root(self, category: FileCategory | str) -> Path:
        return self.production_roots[FileCategory(category)]

    def session_dir(self, target_version: str) -> Path:
        validate_version_name(target_version)
        return self.staging_area / target_version

    def production_path(self, category: FileCategory | str, relative_path: str) -> Path:
        """Deterministic destination of a staged file."""
        return self.production_root(category).joinpath(*relative_path.split("/"))

    def repo_relative(self, path: Path) -> str:
        return path.relative_to(self.repo_root).as_posix()


def validate_version_name(target_version: str) -> None:
    """A target version names exactly one directory inside the staging area."""
    if (
        not target_version
        or target_version.strip() != target_version
        or target_version in {".", ".."}
        or "/" in target_version
        or "\\" in target_version
    ):
        raise StagingValidationError(
            f"Invalid target version {target_version!r}: must be a single "
            "path segment such as 'v2.1.0'"
        )


__all__ = ["METADATA_FILENAME", "StagingLayout", "validate_version_name"]
