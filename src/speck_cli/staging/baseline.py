"""Production tree snapshots used for drift detection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .errors import StagingIOError, StagingValidationError
from .models import FileBaseline, ProductionBaseline, StagingSession
from .paths import StagingLayout
from .store import write_metadata
from .transitions import is_terminal

logger = logging.getLogger(__name__)


def iter_regular_files(root: Path) -> Iterator[Path]:
    """Yield every regular file below ``root`` in sorted order.

    A missing root yields nothing.
    """
    if not root.is_dir():
        return
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path


def stat_file(path: Path) -> FileBaseline:
    """Return the baseline entry for ``path`` (``exists=False`` if absent)."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return FileBaseline.absent()
    except OSError as exc:
        raise StagingIOError(path, f"Cannot stat {path}: {exc}") from exc
    return FileBaseline(exists=True, mtime=st.st_mtime_ns / 1_000_000, size=st.st_size)


def snapshot_production_tree(layout: StagingLayout) -> dict[str, FileBaseline]:
    """Stat every file under the production roots, keyed by repo-relative path."""
    files: dict[str, FileBaseline] = {}
    for category, root in layout.production_roots.items():
        for path in iter_regular_files(root):
            state = stat_file(path)
            if state.exists:
                files[layout.repo_relative(path)] = state
        logger.debug("Scanned production root %s (%s)", root, category)
    return files


def capture_production_baseline(session: StagingSession) -> StagingSession:
    """Record production file metadata in ``staging.json``.

    Files that do not exist are left out of the map; an empty production
    tree therefore yields an empty ``files`` mapping.
    """
    if is_terminal(session.status):
        raise StagingValidationError(
            f"Cannot capture baseline: staging {session.target_version} "
            f"is already {session.status}"
        )

    baseline = ProductionBaseline(
        captured_at=datetime.now(timezone.utc).isoformat(),
        files=snapshot_production_tree(session.layout),
    )
    metadata = session.metadata.model_copy(update={"production_baseline": baseline})
    write_metadata(session.root_dir, metadata)
    logger.info(
        "Captured production baseline for %s: %d file(s)",
        session.target_version,
        len(baseline.files),
    )
    return session.with_metadata(metadata)


__all__ = [
    "capture_production_baseline",
    "iter_regular_files",
    "snapshot_production_tree",
    "stat_file",
]
