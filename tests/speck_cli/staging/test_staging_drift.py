"""Tests for production baselines and conflict detection."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from speck_cli.staging import (
    ConflictKind,
    FileBaseline,
    StagingLayout,
    StagingSession,
    StagingValidationError,
    capture_production_baseline,
    create_staging_directory,
    detect_file_conflicts,
    snapshot_production_tree,
    update_staging_status,
)
from speck_cli.staging.conflicts import classify_change

from tests.utils import EXISTING_FILES, write_file


@pytest.fixture
def populated_session(populated_repo: Path) -> StagingSession:
    layout = StagingLayout.for_repo(populated_repo)
    return create_staging_directory(populated_repo, "v2.1.0", layout=layout)


class TestCaptureProductionBaseline:
    def test_empty_production_tree(self, session: StagingSession) -> None:
        captured = capture_production_baseline(session)
        assert captured.metadata.production_baseline is not None
        assert captured.metadata.production_baseline.files == {}

        data = json.loads((session.root_dir / "staging.json").read_text())
        assert data["productionBaseline"]["files"] == {}
        assert data["productionBaseline"]["capturedAt"]

    def test_records_every_production_file(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        files = captured.metadata.production_baseline.files
        assert sorted(files) == sorted(EXISTING_FILES)
        for rel, state in files.items():
            path = populated_session.repo_root / rel
            assert state.exists is True
            assert state.size == path.stat().st_size
            assert state.mtime == path.stat().st_mtime_ns / 1_000_000

    def test_includes_nested_files(self, session: StagingSession) -> None:
        write_file(session.repo_root / ".claude/skills/speck.pdf/SKILL.md", "# PDF\n")
        captured = capture_production_baseline(session)
        assert ".claude/skills/speck.pdf/SKILL.md" in captured.metadata.production_baseline.files

    def test_ignores_staging_area_and_unmapped_dirs(self, session: StagingSession) -> None:
        write_file(session.scripts_dir / "new.ts", "// staged\n")
        write_file(session.repo_root / ".claude/settings.json", "{}\n")
        captured = capture_production_baseline(session)
        assert captured.metadata.production_baseline.files == {}

    def test_missing_production_root_is_empty(self, repo: Path) -> None:
        (repo / ".claude" / "agents").rmdir()
        layout = StagingLayout.for_repo(repo)
        assert snapshot_production_tree(layout) == {}

    def test_refused_for_terminal_session(self, session: StagingSession) -> None:
        rolled_back = update_staging_status(session, "rolled-back")
        with pytest.raises(StagingValidationError):
            capture_production_baseline(rolled_back)


class TestClassifyChange:
    def test_unchanged(self) -> None:
        state = FileBaseline(exists=True, mtime=1.0, size=3)
        assert classify_change(state, state) is None

    def test_both_absent(self) -> None:
        assert classify_change(FileBaseline.absent(), FileBaseline.absent()) is None

    def test_created(self) -> None:
        current = FileBaseline(exists=True, mtime=1.0, size=3)
        assert classify_change(FileBaseline.absent(), current) is ConflictKind.CREATED

    def test_deleted(self) -> None:
        baseline = FileBaseline(exists=True, mtime=1.0, size=3)
        assert classify_change(baseline, FileBaseline.absent()) is ConflictKind.DELETED

    @pytest.mark.parametrize(
        "current",
        [
            FileBaseline(exists=True, mtime=2.0, size=3),
            FileBaseline(exists=True, mtime=1.0, size=4),
        ],
    )
    def test_modified_by_mtime_or_size(self, current: FileBaseline) -> None:
        baseline = FileBaseline(exists=True, mtime=1.0, size=3)
        assert classify_change(baseline, current) is ConflictKind.MODIFIED


class TestDetectFileConflicts:
    def test_requires_baseline(self, session: StagingSession) -> None:
        with pytest.raises(StagingValidationError, match="baseline"):
            detect_file_conflicts(session)

    def test_no_changes(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        assert detect_file_conflicts(captured) == []

    def test_modified_file(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        target = captured.repo_root / ".speck/scripts/existing-script.ts"
        target.write_text("// Modified by the user while agents ran, with a longer body\n")

        conflicts = detect_file_conflicts(captured)
        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.path == ".speck/scripts/existing-script.ts"
        assert conflict.kind is ConflictKind.MODIFIED
        assert conflict.baseline_state.exists is True
        assert conflict.current_state.size == target.stat().st_size

    def test_mtime_only_change(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        target = captured.repo_root / ".claude/commands/speck.existing-command.md"
        st = target.stat()
        os.utime(target, ns=(st.st_atime_ns, st.st_mtime_ns + 5_000_000_000))

        conflicts = detect_file_conflicts(captured)
        assert [(c.path, c.kind) for c in conflicts] == [
            (".claude/commands/speck.existing-command.md", ConflictKind.MODIFIED)
        ]

    def test_created_file(self, session: StagingSession) -> None:
        captured = capture_production_baseline(session)
        write_file(captured.repo_root / ".claude/agents/speck.new-agent.md", "# New\n")

        conflicts = detect_file_conflicts(captured)
        assert len(conflicts) == 1
        assert conflicts[0].path == ".claude/agents/speck.new-agent.md"
        assert conflicts[0].kind is ConflictKind.CREATED
        assert conflicts[0].baseline_state.exists is False

    def test_deleted_file(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        (captured.repo_root / ".claude/skills/speck.existing-skill.md").unlink()

        conflicts = detect_file_conflicts(captured)
        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.DELETED
        assert conflicts[0].current_state.exists is False

    def test_conflicts_sorted_by_path(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        root = captured.repo_root
        (root / ".speck/scripts/existing-script.ts").unlink()
        write_file(root / ".claude/agents/speck.added.md", "# Added\n")
        (root / ".claude/commands/speck.existing-command.md").write_text("changed and longer\n" * 3)

        paths = [c.path for c in detect_file_conflicts(captured)]
        assert paths == sorted(paths)
        assert len(paths) == 3

    def test_staged_files_are_not_conflicts(self, session: StagingSession) -> None:
        captured = capture_production_baseline(session)
        write_file(captured.scripts_dir / "test.ts", "// staged\n")
        assert detect_file_conflicts(captured) == []

    def test_does_not_modify_metadata(self, populated_session: StagingSession) -> None:
        captured = capture_production_baseline(populated_session)
        before = (captured.root_dir / "staging.json").read_text()
        (captured.repo_root / ".speck/scripts/existing-script.ts").unlink()
        detect_file_conflicts(captured)
        assert (captured.root_dir / "staging.json").read_text() == before
