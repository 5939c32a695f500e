"""Find staging sessions abandoned by a crashed or killed process."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import StagingIOError, StagingParseError
from .models import OrphanedSession
from .paths import METADATA_FILENAME
from .store import read_metadata
from .transitions import is_terminal

logger = logging.getLogger(__name__)


def detect_orphaned_staging(staging_area: Path) -> list[OrphanedSession]:
    """Return every non-terminal session under ``staging_area``.

    Directories without ``staging.json`` are not sessions and are skipped.
    Directories whose ``staging.json`` cannot be read are reported with
    ``status=None`` so the user can decide what to do with them.
    """
    staging_area = Path(staging_area)
    if not staging_area.is_dir():
        return []

    orphans: list[OrphanedSession] = []
    for root_dir in sorted(p for p in staging_area.iterdir() if p.is_dir()):
        if not (root_dir / METADATA_FILENAME).exists():
            logger.debug("Ignoring %s: no %s", root_dir, METADATA_FILENAME)
            continue
        try:
            metadata = read_metadata(root_dir)
        except (StagingParseError, StagingIOError) as exc:
            logger.warning("Unreadable staging session at %s: %s", root_dir, exc)
            orphans.append(
                OrphanedSession(
                    root_dir=root_dir,
                    target_version=root_dir.name,
                    status=None,
                    error=str(exc),
                )
            )
            continue

        if is_terminal(metadata.status):
            continue
        logger.warning(
            "Orphaned staging session %s (%s) started %s",
            metadata.target_version,
            metadata.status,
            metadata.start_time,
        )
        orphans.append(
            OrphanedSession(
                root_dir=root_dir,
                target_version=metadata.target_version,
                status=metadata.status,
                start_time=metadata.start_time,
            )
        )
    return orphans


__all__ = ["detect_orphaned_staging"]
