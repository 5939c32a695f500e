"""Enumerate files agents wrote into a staging root."""

from __future__ import annotations

from .baseline import iter_regular_files
from .models import FileCategory, StagedFile, StagingSession


def list_staged_files(session: StagingSession) -> list[StagedFile]:
    """Return one entry per regular file under the four category directories.

    The category is decided by the top-level staging subdirectory alone,
    and the production path is always computed from the layout, never read
    back from anything persisted. Entries are ordered by category, then by
    relative path.
    """
    staged: list[StagedFile] = []
    for category in FileCategory:
        category_dir = session.category_dir(category)
        for path in iter_regular_files(category_dir):
            relative_path = path.relative_to(category_dir).as_posix()
            staged.append(
                StagedFile(
                    category=category,
                    relative_path=relative_path,
                    staging_path=path,
                    production_path=session.layout.production_path(
                        category, relative_path
                    ),
                )
            )
    return staged


def generate_file_manifest(session: StagingSession) -> list[StagedFile]:
    """Manifest of what a commit would write, for reporting."""
    return list_staged_files(session)


__all__ = ["generate_file_manifest", "list_staged_files"]
