"""Tests for staging session creation, loading and agent results."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from speck_cli.staging import (
    AgentResult,
    StagingIOError,
    StagingLayout,
    StagingNotFoundError,
    StagingParseError,
    StagingSession,
    StagingStatus,
    StagingValidationError,
    create_staging_directory,
    load_staging_context,
    record_agent_result,
    update_staging_status,
)
from speck_cli.staging import manager as manager_mod

from tests.utils import write_file


class TestCreateStagingDirectory:
    def test_creates_root_and_category_dirs(self, session: StagingSession, layout: StagingLayout) -> None:
        assert session.root_dir == layout.staging_area / "v2.1.0"
        assert session.root_dir.is_dir()
        assert ".transform-staging" in session.root_dir.parts
        for category_dir in (
            session.scripts_dir,
            session.commands_dir,
            session.agents_dir,
            session.skills_dir,
        ):
            assert category_dir.is_dir()
        assert session.scripts_dir == session.root_dir / "scripts"
        assert session.skills_dir == session.root_dir / "skills"

    def test_writes_initial_metadata(self, session: StagingSession) -> None:
        data = json.loads((session.root_dir / "staging.json").read_text())
        assert data["status"] == "staging"
        assert data["targetVersion"] == "v2.1.0"
        assert data["previousVersion"] is None
        assert data["agentResults"] == {"agent1": None, "agent2": None}
        assert data["productionBaseline"] is None
        assert data["startTime"]

    def test_session_metadata(self, session: StagingSession) -> None:
        assert session.status is StagingStatus.STAGING
        assert session.target_version == "v2.1.0"
        assert session.metadata.agent_results.agent1 is None
        assert session.metadata.agent_results.agent2 is None
        assert session.metadata.production_baseline is None

    def test_captures_start_time(self, repo: Path, layout: StagingLayout) -> None:
        before = datetime.now(timezone.utc)
        session = create_staging_directory(repo, "v3.0.0-beta", layout=layout)
        after = datetime.now(timezone.utc)
        started = datetime.fromisoformat(session.metadata.start_time)
        assert before <= started <= after
        assert session.target_version == "v3.0.0-beta"

    def test_previous_version(self, repo: Path, layout: StagingLayout) -> None:
        session = create_staging_directory(repo, "v2.1.0", "v2.0.0", layout=layout)
        assert session.metadata.previous_version == "v2.0.0"

    def test_layout_defaults_from_repo(self, repo: Path) -> None:
        session = create_staging_directory(repo, "v2.1.0")
        assert session.root_dir == repo / ".speck" / ".transform-staging" / "v2.1.0"

    def test_refuses_existing_session(self, session: StagingSession, repo: Path, layout: StagingLayout) -> None:
        marker = session.scripts_dir / "keep.ts"
        marker.write_text("// agent output")
        with pytest.raises(StagingValidationError, match="already exists"):
            create_staging_directory(repo, "v2.1.0", layout=layout)
        assert marker.exists()

    @pytest.mark.parametrize("terminal", ["failed", "rolled-back"])
    def test_replaces_finished_session(
        self, session: StagingSession, repo: Path, layout: StagingLayout, terminal: str
    ) -> None:
        write_file(session.scripts_dir / "stale.ts", "// left by the failed run\n")
        update_staging_status(session, terminal)
        assert session.root_dir.exists()

        fresh = create_staging_directory(repo, "v2.1.0", layout=layout)

        assert fresh.status is StagingStatus.STAGING
        assert fresh.root_dir == session.root_dir
        assert not (fresh.scripts_dir / "stale.ts").exists()
        assert json.loads((fresh.root_dir / "staging.json").read_text())["status"] == "staging"

    def test_refuses_unreadable_existing_session(
        self, session: StagingSession, repo: Path, layout: StagingLayout
    ) -> None:
        (session.root_dir / "staging.json").write_text("{broken")
        with pytest.raises(StagingValidationError, match="already exists"):
            create_staging_directory(repo, "v2.1.0", layout=layout)
        assert (session.root_dir / "staging.json").read_text() == "{broken"

    @pytest.mark.parametrize("version", ["", "..", ".", "v1/../../etc", "a\\b", " v1"])
    def test_rejects_unsafe_version(self, repo: Path, layout: StagingLayout, version: str) -> None:
        with pytest.raises(StagingValidationError):
            create_staging_directory(repo, version, layout=layout)

    def test_removes_partial_root_on_io_failure(
        self, repo: Path, layout: StagingLayout, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _fail(root_dir: Path, metadata: object) -> Path:
            raise StagingIOError(root_dir, "disk full")

        monkeypatch.setattr(manager_mod, "write_metadata", _fail)
        with pytest.raises(StagingIOError, match="disk full"):
            create_staging_directory(repo, "v2.1.0", layout=layout)
        assert not (layout.staging_area / "v2.1.0").exists()

    def test_wraps_mkdir_failure(
        self, repo: Path, layout: StagingLayout, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_mkdir = Path.mkdir

        def _mkdir(self: Path, *args: object, **kwargs: object) -> None:
            if self.name == "agents":
                raise PermissionError("denied")
            original_mkdir(self, *args, **kwargs)

        monkeypatch.setattr(Path, "mkdir", _mkdir)
        with pytest.raises(StagingIOError, match="denied"):
            create_staging_directory(repo, "v2.1.0", layout=layout)
        monkeypatch.undo()
        assert not (layout.staging_area / "v2.1.0").exists()


class TestLoadStagingContext:
    def test_round_trip(self, session: StagingSession, layout: StagingLayout) -> None:
        advanced = update_staging_status(session, "agent1-complete")
        loaded = load_staging_context(advanced.root_dir, layout=layout)
        assert loaded.status is StagingStatus.AGENT1_COMPLETE
        assert loaded.target_version == "v2.1.0"
        assert loaded.metadata == advanced.metadata

    def test_locates_project_root(self, session: StagingSession, repo: Path) -> None:
        loaded = load_staging_context(session.root_dir)
        assert loaded.repo_root == repo
        assert loaded.layout.production_root("scripts") == repo / ".speck" / "scripts"

    def test_missing_metadata(self, tmp_path: Path) -> None:
        with pytest.raises(StagingNotFoundError):
            load_staging_context(tmp_path / "nope")

    def test_invalid_json(self, session: StagingSession) -> None:
        (session.root_dir / "staging.json").write_text("{not json")
        with pytest.raises(StagingParseError, match="invalid JSON"):
            load_staging_context(session.root_dir)

    def test_schema_violation(self, session: StagingSession) -> None:
        (session.root_dir / "staging.json").write_text(
            json.dumps({"status": "pending", "targetVersion": "v2.1.0"})
        )
        with pytest.raises(StagingParseError) as excinfo:
            load_staging_context(session.root_dir)
        assert "status" in str(excinfo.value)

    def test_non_object_document(self, session: StagingSession) -> None:
        (session.root_dir / "staging.json").write_text("[]")
        with pytest.raises(StagingParseError):
            load_staging_context(session.root_dir)


class TestRecordAgentResult:
    def test_persists_result(self, session: StagingSession, layout: StagingLayout) -> None:
        result = AgentResult(
            success=True,
            files_written=["scripts/test.ts", "scripts/util.ts"],
            duration=5000,
        )
        updated = record_agent_result(session, "agent1", result)
        assert updated.metadata.agent_results.agent1 == result
        assert updated.status is StagingStatus.STAGING

        data = json.loads((session.root_dir / "staging.json").read_text())
        assert data["agentResults"]["agent1"] == {
            "success": True,
            "filesWritten": ["scripts/test.ts", "scripts/util.ts"],
            "error": None,
            "duration": 5000.0,
        }
        assert data["agentResults"]["agent2"] is None
        assert load_staging_context(session.root_dir, layout=layout).metadata.agent_results.agent1 == result

    def test_unknown_slot(self, session: StagingSession) -> None:
        with pytest.raises(StagingValidationError, match="agent3"):
            record_agent_result(session, "agent3", AgentResult(success=True))

    def test_refused_for_terminal_session(self, session: StagingSession) -> None:
        failed = update_staging_status(session, "failed")
        with pytest.raises(StagingValidationError):
            record_agent_result(failed, "agent1", AgentResult(success=True))
