"""Apply a staging root to production, or throw it away.

Commit is not atomic across files. Each file is copied over its production
path unconditionally and then removed from staging, so a commit that
stopped half way can simply be run again: what was already moved is gone
from staging, and what remains overwrites production the same way.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .discovery import list_staged_files
from .errors import StagingCommitError, StagingIOError, StagingValidationError
from .models import StagedFile, StagingSession, StagingStatus
from .transitions import is_terminal, validate_transition

logger = logging.getLogger(__name__)


def _commit_file(staged: StagedFile) -> None:
    # copy2 would nest the file inside an existing directory of the same name.
    if staged.production_path.is_dir():
        raise IsADirectoryError(
            f"production path is a directory: {staged.production_path}"
        )
    staged.production_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(staged.staging_path, staged.production_path)
    staged.staging_path.unlink()


def _remove_root(root_dir: Path) -> None:
    try:
        shutil.rmtree(root_dir)
    except FileNotFoundError:
        logger.warning("Staging directory already removed: %s", root_dir)
    except OSError as exc:
        raise StagingIOError(
            root_dir, f"Cannot remove staging directory {root_dir}: {exc}"
        ) from exc


def commit_staging(session: StagingSession) -> StagingSession:
    """Move every staged file onto production and delete the staging root.

    Requires status ``ready``; anything else raises
    :class:`StagingValidationError` before the filesystem is touched. If a
    file fails, :class:`StagingCommitError` names it, files committed before
    it stay in production and the staging root is kept.
    """
    if session.status != StagingStatus.READY:
        raise StagingValidationError(
            f"Cannot commit staging {session.target_version}: status is "
            f"{session.status}, expected {StagingStatus.READY}"
        )
    validate_transition(session.status, StagingStatus.COMMITTED)

    staged_files = list_staged_files(session)
    committed: list[Path] = []
    for staged in staged_files:
        try:
            _commit_file(staged)
        except OSError as exc:
            logger.error(
                "Commit of %s stopped at %s: %s",
                session.target_version,
                staged.staging_path,
                exc,
            )
            raise StagingCommitError(staged, exc, committed) from exc
        committed.append(staged.production_path)
        logger.debug("Committed %s -> %s", staged.staging_path, staged.production_path)

    _remove_root(session.root_dir)
    logger.info(
        "Committed staging %s: %d file(s) applied to production",
        session.target_version,
        len(committed),
    )
    return session.with_status(StagingStatus.COMMITTED)


def rollback_staging(session: StagingSession) -> StagingSession:
    """Delete the staging root without writing any production path."""
    if is_terminal(session.status):
        raise StagingValidationError(
            f"Cannot roll back staging {session.target_version}: "
            f"status is already {session.status}"
        )
    validate_transition(session.status, StagingStatus.ROLLED_BACK)

    _remove_root(session.root_dir)
    logger.info("Rolled back staging %s", session.target_version)
    return session.with_status(StagingStatus.ROLLED_BACK)


__all__ = ["commit_staging", "rollback_staging"]
