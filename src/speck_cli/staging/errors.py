"""Exception hierarchy for the transformation staging engine."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .models import StagedFile, StagingStatus


class StagingError(Exception):
    """Base exception for staging errors."""


class StagingValidationError(StagingError):
    """Illegal status transition or violated precondition."""


class IllegalTransitionError(StagingValidationError):
    """Requested status is not reachable from the current status."""

    def __init__(
        self,
        current: "StagingStatus",
        requested: "StagingStatus | str",
        allowed: Iterable["StagingStatus"],
    ):
        self.current = current
        self.requested = requested
        self.allowed = tuple(allowed)
        legal = ", ".join(str(s) for s in self.allowed) or "none (terminal)"
        super().__init__(
            f"Illegal staging transition: {current} -> {requested} "
            f"(legal next states: {legal})"
        )


class StagingNotFoundError(StagingError):
    """staging.json (or the staging directory itself) does not exist."""

    def __init__(self, path: Path, message: str | None = None):
        self.path = path
        super().__init__(message or f"No staging metadata found at {path}")


class StagingParseError(StagingError):
    """staging.json exists but is not valid JSON or fails schema validation."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid staging metadata in {path}: {reason}")


class StagingIOError(StagingError):
    """Filesystem failure (permission, disk space, path length)."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(message)


class StagingCommitError(StagingIOError):
    """A single staged file could not be moved onto production.

    Files committed before the failure stay in production and the staging
    root is kept, so the commit can be re-run once the cause is fixed.
    """

    def __init__(
        self,
        staged_file: "StagedFile",
        cause: BaseException,
        committed: list[Path],
    ):
        self.staged_file = staged_file
        self.committed = committed
        super().__init__(
            staged_file.staging_path,
            f"Failed to commit {staged_file.category}/{staged_file.relative_path} "
            f"to {staged_file.production_path}: {cause} "
            f"({len(committed)} file(s) already committed; staging kept for retry)",
        )


class ConflictWarning(UserWarning):
    """Production files changed since the baseline was captured.

    Advisory only: the caller decides whether to skip, merge manually,
    force, or abort.
    """


__all__ = [
    "ConflictWarning",
    "IllegalTransitionError",
    "StagingCommitError",
    "StagingError",
    "StagingIOError",
    "StagingNotFoundError",
    "StagingParseError",
    "StagingValidationError",
]
