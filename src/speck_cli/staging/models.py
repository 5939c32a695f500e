"""Data types for the transformation staging engine.

Persisted types (``staging.json``) are pydantic models with the camelCase
keys the file uses on disk. Derived, never-persisted types (staged files,
conflicts, orphans, inspection reports) are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .paths import StagingLayout


class StagingStatus(StrEnum):
    """Lifecycle states of a staging session."""

    STAGING = "staging"
    AGENT1_COMPLETE = "agent1-complete"
    AGENT2_COMPLETE = "agent2-complete"
    READY = "ready"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled-back"
    FAILED = "failed"


class FileCategory(StrEnum):
    """Top-level staging subdirectories, each mapped to one production root."""

    SCRIPTS = "scripts"
    COMMANDS = "commands"
    AGENTS = "agents"
    SKILLS = "skills"


class ConflictKind(StrEnum):
    CREATED = "created-since-baseline"
    DELETED = "deleted-since-baseline"
    MODIFIED = "modified-since-baseline"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FileBaseline(_CamelModel):
    """Metadata of one production file at baseline time."""

    exists: bool
    mtime: float | None  # milliseconds since epoch
    size: int | None

    @classmethod
    def absent(cls) -> FileBaseline:
        return cls(exists=False, mtime=None, size=None)


class ProductionBaseline(_CamelModel):
    captured_at: str = Field(..., alias="capturedAt")
    files: dict[str, FileBaseline] = Field(default_factory=dict)


class AgentResult(_CamelModel):
    """Outcome reported by the caller after an external agent finished."""

    success: bool
    files_written: list[str] = Field(default_factory=list, alias="filesWritten")
    error: str | None = None
    duration: float = Field(0, ge=0)  # milliseconds


class AgentResults(_CamelModel):
    agent1: AgentResult | None = None
    agent2: AgentResult | None = None


class StagingMetadata(_CamelModel):
    """Contents of ``staging.json``."""

    status: StagingStatus
    target_version: str = Field(..., min_length=1, alias="targetVersion")
    previous_version: str | None = Field(None, alias="previousVersion")
    start_time: str = Field(..., alias="startTime")
    agent_results: AgentResults = Field(
        default_factory=AgentResults, alias="agentResults"
    )
    production_baseline: ProductionBaseline | None = Field(
        None, alias="productionBaseline"
    )


@dataclass(frozen=True)
class StagingSession:
    """In-memory handle on one staging root.

    Category directory paths are derived from ``root_dir`` and never stored
    separately.
    """

    root_dir: Path
    target_version: str
    layout: StagingLayout
    metadata: StagingMetadata

    @property
    def status(self) -> StagingStatus:
        return self.metadata.status

    @property
    def repo_root(self) -> Path:
        return self.layout.repo_root

    @property
    def metadata_path(self) -> Path:
        from .paths import METADATA_FILENAME

        return self.root_dir / METADATA_FILENAME

    def category_dir(self, category: FileCategory | str) -> Path:
        return self.root_dir / FileCategory(category).value

    @property
    def scripts_dir(self) -> Path:
        return self.category_dir(FileCategory.SCRIPTS)

    @property
    def commands_dir(self) -> Path:
        return self.category_dir(FileCategory.COMMANDS)

    @property
    def agents_dir(self) -> Path:
        return self.category_dir(FileCategory.AGENTS)

    @property
    def skills_dir(self) -> Path:
        return self.category_dir(FileCategory.SKILLS)

    def with_metadata(self, metadata: StagingMetadata) -> StagingSession:
        return replace(self, metadata=metadata)

    def with_status(self, status: StagingStatus) -> StagingSession:
        return self.with_metadata(self.metadata.model_copy(update={"status": status}))


@dataclass(frozen=True)
class StagedFile:
    """A file an agent wrote into staging, with its computed destination."""

    category: FileCategory
    relative_path: str  # POSIX, relative to the category directory
    staging_path: Path
    production_path: Path

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": str(self.category),
            "relative_path": self.relative_path,
            "staging_path": str(self.staging_path),
            "production_path": str(self.production_path),
        }


@dataclass(frozen=True)
class FileConflict:
    """A production path whose state drifted from the captured baseline."""

    path: str  # repository-relative, POSIX
    baseline_state: FileBaseline
    current_state: FileBaseline
    kind: ConflictKind

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "kind": str(self.kind),
            "baseline_state": self.baseline_state.to_json_dict(),
            "current_state": self.current_state.to_json_dict(),
        }


@dataclass(frozen=True)
class OrphanedSession:
    """A staging root left in a non-terminal state by an earlier process.

    ``status`` is None when ``staging.json`` could not be parsed; ``error``
    then says why.
    """

    root_dir: Path
    target_version: str
    status: StagingStatus | None
    start_time: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_dir": str(self.root_dir),
            "target_version": self.target_version,
            "status": str(self.status) if self.status else None,
            "start_time": self.start_time,
            "error": self.error,
        }


@dataclass
class StagingInspection:
    """Diagnostic report combining metadata, staged files and conflicts."""

    root_dir: Path
    target_version: str
    previous_version: str | None
    status: StagingStatus
    start_time: str
    baseline_captured: bool
    files: list[StagedFile] = field(default_factory=list)
    conflicts: list[FileConflict] = field(default_factory=list)

    @property
    def file_counts(self) -> dict[str, int]:
        counts = {category.value: 0 for category in FileCategory}
        for staged in self.files:
            counts[staged.category.value] += 1
        counts["total"] = len(self.files)
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_dir": str(self.root_dir),
            "target_version": self.target_version,
            "previous_version": self.previous_version,
            "status": str(self.status),
            "start_time": self.start_time,
            "baseline_captured": self.baseline_captured,
            "files": self.file_counts,
            "staged_files": [f.to_dict() for f in self.files],
            "conflicts": [c.to_dict() for c in self.conflicts],
        }
