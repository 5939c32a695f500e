"""Shared fixtures for staging engine and transform workflow tests."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable

import pytest

from speck_cli.staging import StagingLayout, StagingSession, create_staging_directory
from tests.utils import EXISTING_FILES, PRODUCTION_DIRS, write_file


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Empty project: .speck/ plus empty production roots."""
    root = (tmp_path / "repo").resolve()
    for rel in PRODUCTION_DIRS:
        (root / rel).mkdir(parents=True)
    return root


@pytest.fixture
def populated_repo(repo: Path) -> Path:
    """Project with one existing file in each production root."""
    for rel, content in EXISTING_FILES.items():
        write_file(repo / rel, content)
    return repo


@pytest.fixture
def layout(repo: Path) -> StagingLayout:
    return StagingLayout.for_repo(repo)


@pytest.fixture
def session(repo: Path, layout: StagingLayout) -> StagingSession:
    return create_staging_directory(repo, "v2.1.0", layout=layout)


@pytest.fixture
def production_digest() -> Callable[[StagingLayout], dict[str, str]]:
    """Hash every file under the production roots, keyed by repo-relative path."""

    def _digest(layout: StagingLayout) -> dict[str, str]:
        digests: dict[str, str] = {}
        for root in layout.production_roots.values():
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if path.is_file():
                    digests[layout.repo_relative(path)] = hashlib.sha256(
                        path.read_bytes()
                    ).hexdigest()
        return digests

    return _digest
