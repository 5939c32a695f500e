"""Compare the captured baseline against the live production tree."""

from __future__ import annotations

import logging

from .baseline import snapshot_production_tree
from .errors import StagingValidationError
from .models import ConflictKind, FileBaseline, FileConflict, StagingSession

logger = logging.getLogger(__name__)


def classify_change(
    baseline: FileBaseline, current: FileBaseline
) -> ConflictKind | None:
    """Return the kind of drift between two states, or None if unchanged."""
    if not baseline.exists and not current.exists:
        return None
    if not baseline.exists:
        return ConflictKind.CREATED
    if not current.exists:
        return ConflictKind.DELETED
    if baseline.mtime != current.mtime or baseline.size != current.size:
        return ConflictKind.MODIFIED
    return None


def detect_file_conflicts(session: StagingSession) -> list[FileConflict]:
    """List production paths that changed since the baseline was captured.

    The production tree is re-walked on every call. This is read-only and
    advisory: nothing is blocked here, the caller decides what to do.
    """
    baseline = session.metadata.production_baseline
    if baseline is None:
        raise StagingValidationError(
            f"No production baseline captured for {session.target_version}; "
            "call capture_production_baseline first"
        )

    current = snapshot_production_tree(session.layout)
    conflicts: list[FileConflict] = []
    for path in sorted(set(baseline.files) | set(current)):
        before = baseline.files.get(path) or FileBaseline.absent()
        after = current.get(path) or FileBaseline.absent()
        kind = classify_change(before, after)
        if kind is not None:
            conflicts.append(
                FileConflict(path=path, baseline_state=before, current_state=after, kind=kind)
            )

    if conflicts:
        logger.warning(
            "%d production file(s) changed since baseline for %s",
            len(conflicts),
            session.target_version,
        )
    return conflicts


__all__ = ["classify_change", "detect_file_conflicts"]
