"""Read-only views of a staging session."""

from __future__ import annotations

from pathlib import Path

from .conflicts import detect_file_conflicts
from .discovery import list_staged_files
from .errors import StagingNotFoundError
from .manager import load_staging_context
from .models import StagingInspection, StagingSession, StagingStatus
from .paths import StagingLayout
from .store import read_metadata


def get_staging_status(root_dir: Path) -> StagingStatus | None:
    """Current status of the session at ``root_dir``, or None if there is none.

    A ``staging.json`` that exists but is corrupt still raises
    ``StagingParseError``.
    """
    try:
        return read_metadata(Path(root_dir)).status
    except StagingNotFoundError:
        return None


def inspect_staging(
    session: StagingSession | Path, *, layout: StagingLayout | None = None
) -> StagingInspection:
    """Report metadata, staged files per category and production drift.

    Accepts a loaded session or a staging root directory; a root is loaded
    with :func:`load_staging_context` (``layout`` is passed through).
    Conflicts are left empty until a baseline has been captured. Nothing
    on disk is modified.
    """
    if not isinstance(session, StagingSession):
        session = load_staging_context(Path(session), layout=layout)
    metadata = session.metadata
    has_baseline = metadata.production_baseline is not None
    return StagingInspection(
        root_dir=session.root_dir,
        target_version=session.target_version,
        previous_version=metadata.previous_version,
        status=metadata.status,
        start_time=metadata.start_time,
        baseline_captured=has_baseline,
        files=list_staged_files(session),
        conflicts=detect_file_conflicts(session) if has_baseline else [],
    )


__all__ = ["get_staging_status", "inspect_staging"]
