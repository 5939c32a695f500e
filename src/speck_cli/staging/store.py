"""Persistence of ``staging.json``.

The whole document is rewritten on every change: serialized into a temp
file in the same directory, then moved over the old file with
``os.replace``. A crash mid-write leaves either the previous document or
the new one, never a truncated file.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .errors import StagingIOError, StagingNotFoundError, StagingParseError
from .models import StagingMetadata
from .paths import METADATA_FILENAME


def metadata_path(root_dir: Path) -> Path:
    return root_dir / METADATA_FILENAME


def dump_metadata(metadata: StagingMetadata) -> str:
    return json.dumps(metadata.to_json_dict(), indent=2) + "\n"


def write_metadata(root_dir: Path, metadata: StagingMetadata) -> Path:
    """Atomically replace ``staging.json`` under ``root_dir``."""
    path = metadata_path(root_dir)
    payload = dump_metadata(metadata)

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=root_dir,
            prefix=f".{METADATA_FILENAME}.",
            suffix=".tmp",
        )
    except OSError as exc:
        raise StagingIOError(path, f"Cannot write {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise StagingIOError(path, f"Cannot write {path}: {exc}") from exc
    return path


def read_metadata(root_dir: Path) -> StagingMetadata:
    """Load and validate ``staging.json`` under ``root_dir``.

    Raises :class:`StagingNotFoundError` when the file is absent and
    :class:`StagingParseError` when it is not valid JSON or does not match
    the schema.
    """
    path = metadata_path(root_dir)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise StagingNotFoundError(path) from None
    except OSError as exc:
        raise StagingIOError(path, f"Cannot read {path}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StagingParseError(path, f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise StagingParseError(path, "expected a JSON object")

    try:
        return StagingMetadata.model_validate(data)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise StagingParseError(path, errors) from exc


__all__ = ["dump_metadata", "metadata_path", "read_metadata", "write_metadata"]
