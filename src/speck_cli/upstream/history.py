"""Transformation history (``.speck/transformation-history.json``).

Records which upstream versions were transformed and the factoring
decisions made for each, so later transformations can stay consistent
with earlier ones. Entries are kept newest first.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"


class TransformationHistoryError(Exception):
    """Raised when the history file is unreadable, invalid, or lacks an entry."""


class ArtifactType(StrEnum):
    COMMAND = "command"
    AGENT = "agent"
    SKILL = "skill"
    SCRIPT = "script"


class TransformationStatus(StrEnum):
    TRANSFORMED = "transformed"
    FAILED = "failed"
    PARTIAL = "partial"


class _HistoryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FactoringMapping(_HistoryModel):
    """Maps one upstream source file to an artifact generated from it."""

    source: str = Field(..., min_length=1)
    generated: str = Field(..., min_length=1)
    type: ArtifactType
    description: str | None = None
    rationale: str | None = None


class TransformationHistoryEntry(_HistoryModel):
    version: str = Field(..., min_length=1)
    timestamp: str
    commit_sha: str = Field(..., alias="commitSha")
    status: TransformationStatus
    mappings: list[FactoringMapping] = Field(default_factory=list)
    error_details: str | None = Field(None, alias="errorDetails")


class TransformationHistory(_HistoryModel):
    schema_version: Literal["1.0.0"] = Field(SCHEMA_VERSION, alias="schemaVersion")
    latest_version: str = Field("", alias="latestVersion")
    entries: list[TransformationHistoryEntry] = Field(default_factory=list)


def create_empty_history() -> TransformationHistory:
    return TransformationHistory(
        schema_version=SCHEMA_VERSION, latest_version="", entries=[]
    )


def create_history_entry(
    version: str,
    commit_sha: str,
    status: TransformationStatus | str,
    mappings: list[FactoringMapping] | None = None,
) -> TransformationHistoryEntry:
    return TransformationHistoryEntry(
        version=version,
        timestamp=datetime.now(timezone.utc).isoformat(),
        commit_sha=commit_sha,
        status=TransformationStatus(status),
        mappings=list(mappings or []),
    )


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def read_history(path: Path) -> TransformationHistory:
    """Load the history file; a missing file is an empty history."""
    if not path.exists():
        return create_empty_history()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise TransformationHistoryError(f"Cannot read {path}: {exc}") from exc

    try:
        return TransformationHistory.model_validate(data)
    except ValidationError as exc:
        raise TransformationHistoryError(
            f"Invalid transformation history in {path}: {_describe(exc)}"
        ) from exc


def write_history(path: Path, history: TransformationHistory | dict[str, Any]) -> None:
    """Validate and atomically write the history, creating parent directories."""
    try:
        validated = TransformationHistory.model_validate(
            history.model_dump(by_alias=True)
            if isinstance(history, TransformationHistory)
            else history
        )
    except ValidationError as exc:
        raise TransformationHistoryError(
            f"Refusing to write invalid transformation history: {_describe(exc)}"
        ) from exc

    payload = (
        json.dumps(
            validated.model_dump(mode="json", by_alias=True, exclude_none=True),
            indent=2,
        )
        + "\n"
    )

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as exc:
        raise TransformationHistoryError(f"Cannot write {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_path, path)
    except OSError as exc:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise TransformationHistoryError(f"Cannot write {path}: {exc}") from exc


def _find_entry(
    history: TransformationHistory, version: str, path: Path
) -> TransformationHistoryEntry:
    for entry in history.entries:
        if entry.version == version:
            return entry
    raise TransformationHistoryError(
        f"Version {version} not found in transformation history {path}"
    )


def add_transformation_entry(
    path: Path,
    version: str,
    commit_sha: str,
    status: TransformationStatus | str,
    mappings: list[FactoringMapping] | None = None,
) -> TransformationHistoryEntry:
    """Prepend an entry for ``version`` and make it the latest version.

    An existing entry for the same version is replaced.
    """
    history = read_history(path)
    entry = create_history_entry(version, commit_sha, status, mappings)
    history.entries = [entry] + [e for e in history.entries if e.version != version]
    history.latest_version = version
    write_history(path, history)
    logger.info("Recorded transformation of %s (%s)", version, entry.status)
    return entry


def update_transformation_status(
    path: Path,
    version: str,
    status: TransformationStatus | str,
    error_details: str | None = None,
) -> None:
    history = read_history(path)
    entry = _find_entry(history, version, path)
    entry.status = TransformationStatus(status)
    if error_details is not None:
        entry.error_details = error_details
    write_history(path, history)


def add_factoring_mapping(path: Path, version: str, mapping: FactoringMapping) -> None:
    history = read_history(path)
    _find_entry(history, version, path).mappings.append(mapping)
    write_history(path, history)


def get_previous_factoring_decision(path: Path, source: str) -> FactoringMapping | None:
    """Most recent mapping recorded for ``source`` across all versions."""
    for entry in read_history(path).entries:
        for mapping in entry.mappings:
            if mapping.source == source:
                return mapping
    return None


def get_latest_transformed_version(path: Path) -> str | None:
    """Newest version whose transformation succeeded, or None."""
    for entry in read_history(path).entries:
        if entry.status == TransformationStatus.TRANSFORMED:
            return entry.version
    return None


__all__ = [
    "ArtifactType",
    "FactoringMapping",
    "SCHEMA_VERSION",
    "TransformationHistory",
    "TransformationHistoryEntry",
    "TransformationHistoryError",
    "TransformationStatus",
    "add_factoring_mapping",
    "add_transformation_entry",
    "create_empty_history",
    "create_history_entry",
    "get_latest_transformed_version",
    "get_previous_factoring_decision",
    "read_history",
    "update_transformation_status",
    "write_history",
]
