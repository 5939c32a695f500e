"""Staging lifecycle for the transform-upstream workflow.

The slash command drives two external agents; this module wraps the
staging engine around those invocations:

1. Create the staging session (refusing while orphans exist) and capture
   the production baseline.
2. Hand the category OUTPUT_DIRs to the agents.
3. Record each agent's result and advance the status, rolling back when
   an agent fails.
4. Check production drift, apply the chosen conflict policy, and commit
   or roll back.

Engine errors are turned into :class:`TransformResult` objects here so
the CLI can report them; the engine itself raises.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from speck_cli.core.config import ConfigError, history_path
from speck_cli.staging import (
    AgentResult,
    ConflictWarning,
    FileConflict,
    OrphanedSession,
    StagingCommitError,
    StagingError,
    StagingInspection,
    StagingLayout,
    StagingSession,
    StagingStatus,
    capture_production_baseline,
    commit_staging,
    create_staging_directory,
    detect_file_conflicts,
    detect_orphaned_staging,
    generate_file_manifest,
    inspect_staging,
    is_terminal,
    list_staged_files,
    load_staging_context,
    record_agent_result,
    rollback_staging,
    update_staging_status,
)
from speck_cli.upstream.history import (
    TransformationHistoryError,
    TransformationStatus,
    add_transformation_entry,
    get_latest_transformed_version,
)

logger = logging.getLogger(__name__)


class ConflictPolicy(StrEnum):
    """What to do when production drifted from the baseline before commit."""

    MANUAL = "manual"  # report conflicts, keep staging for a manual merge
    SKIP = "skip"  # leave conflicting production files alone
    FORCE = "force"  # overwrite anyway
    ABORT = "abort"  # roll back the whole session


class RecoveryAction(StrEnum):
    COMMIT = "commit"
    ROLLBACK = "rollback"
    INSPECT = "inspect"


@dataclass
class TransformResult:
    """Outcome of one orchestration step."""

    success: bool
    session: StagingSession | None = None
    error: str | None = None
    files_committed: list[Path] = field(default_factory=list)
    conflicts: list[FileConflict] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    inspection: StagingInspection | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.session is not None:
            data["root_dir"] = str(self.session.root_dir)
            data["target_version"] = self.session.target_version
            data["status"] = str(self.session.status)
        if self.error:
            data["error"] = self.error
        if self.files_committed:
            data["files_committed"] = [str(p) for p in self.files_committed]
        if self.conflicts:
            data["conflicts"] = [c.to_dict() for c in self.conflicts]
        if self.skipped:
            data["skipped"] = list(self.skipped)
        if self.inspection is not None:
            data["inspection"] = self.inspection.to_dict()
        return data


# ============================================================================
# Staging initialization
# ============================================================================


def initialize_staging(
    repo_root: Path, version: str, *, layout: StagingLayout | None = None
) -> TransformResult:
    """Create the staging session for ``version`` and capture the baseline.

    Refuses to start while orphaned sessions exist; those must be recovered
    first.
    """
    try:
        layout = layout or StagingLayout.for_repo(Path(repo_root))
        orphans = detect_orphaned_staging(layout.staging_area)
        if orphans:
            names = ", ".join(o.target_version for o in orphans)
            return TransformResult(
                success=False,
                error=(
                    f"Orphaned staging directories detected: {names}. "
                    "Recover them (commit, rollback or inspect) before starting "
                    "a new transformation."
                ),
            )

        previous_version = get_latest_transformed_version(history_path(layout.repo_root))
        session = create_staging_directory(
            layout.repo_root, version, previous_version, layout=layout
        )
        session = capture_production_baseline(session)
    except (StagingError, ConfigError, TransformationHistoryError) as exc:
        return TransformResult(success=False, error=f"Failed to initialize staging: {exc}")

    return TransformResult(success=True, session=session)


def get_staging_output_dirs(session: StagingSession) -> dict[str, Path]:
    """OUTPUT_DIRs handed to the agents."""
    return {
        "scripts_dir": session.scripts_dir,
        "commands_dir": session.commands_dir,
        "agents_dir": session.agents_dir,
        "skills_dir": session.skills_dir,
    }


# ============================================================================
# Agent status updates
# ============================================================================


def _rollback_after_failure(session: StagingSession, error: str) -> TransformResult:
    if is_terminal(session.status):
        return TransformResult(success=False, session=session, error=error)
    try:
        rolled_back = rollback_staging(session)
    except StagingError as exc:
        logger.error("Rollback of %s failed: %s", session.target_version, exc)
        return TransformResult(
            success=False,
            session=session,
            error=f"{error}; rollback also failed: {exc}",
        )
    return TransformResult(success=False, session=rolled_back, error=error)


def _record_agent_complete(
    session: StagingSession,
    agent: str,
    label: str,
    result: AgentResult,
    advance_to: tuple[StagingStatus, ...],
) -> TransformResult:
    try:
        updated = record_agent_result(session, agent, result)
    except StagingError as exc:
        return _rollback_after_failure(
            session, f"Failed to record {label} completion: {exc}"
        )

    if not result.success:
        logger.warning("%s failed for %s: %s", label, session.target_version, result.error)
        return _rollback_after_failure(
            updated, f"{label} failed: {result.error or 'Unknown error'}"
        )

    try:
        for status in advance_to:
            updated = update_staging_status(updated, status)
    except StagingError as exc:
        return _rollback_after_failure(
            updated, f"Failed to record {label} completion: {exc}"
        )
    return TransformResult(success=True, session=updated)


def record_agent1_complete(session: StagingSession, result: AgentResult) -> TransformResult:
    """Record the bash-to-TypeScript agent's result."""
    return _record_agent_complete(
        session, "agent1", "Agent 1", result, (StagingStatus.AGENT1_COMPLETE,)
    )


def record_agent2_complete(session: StagingSession, result: AgentResult) -> TransformResult:
    """Record the command-factoring agent's result and mark the session ready."""
    return _record_agent_complete(
        session,
        "agent2",
        "Agent 2",
        result,
        (StagingStatus.AGENT2_COMPLETE, StagingStatus.READY),
    )


# ============================================================================
# Commit and rollback
# ============================================================================


def _skip_conflicting_files(
    session: StagingSession, conflicts: list[FileConflict]
) -> list[str]:
    """Drop staged files whose production path drifted; return those paths."""
    conflicting = {c.path for c in conflicts}
    skipped: list[str] = []
    for staged in list_staged_files(session):
        production_rel = session.layout.repo_relative(staged.production_path)
        if production_rel in conflicting:
            staged.staging_path.unlink()
            skipped.append(production_rel)
            logger.info("Skipping %s: changed in production since baseline", production_rel)
    return skipped


def commit_staging_to_production(
    session: StagingSession,
    policy: ConflictPolicy | str = ConflictPolicy.MANUAL,
    *,
    commit_sha: str = "",
) -> TransformResult:
    """Check for drift, apply ``policy``, and commit.

    With ``manual`` (the default) any conflict stops the commit and leaves
    the session in place for the user to merge by hand.
    """
    policy = ConflictPolicy(policy)
    # No policy may touch staging until the session is committable.
    if session.status is not StagingStatus.READY:
        return TransformResult(
            success=False,
            session=session,
            error=(
                f"Commit failed: staging {session.target_version} is "
                f"{session.status}, expected {StagingStatus.READY}"
            ),
        )
    try:
        conflicts = detect_file_conflicts(session)
    except StagingError as exc:
        return TransformResult(success=False, session=session, error=f"Commit failed: {exc}")

    skipped: list[str] = []
    if conflicts:
        summary = (
            f"File conflicts detected: {len(conflicts)} file(s) modified since "
            "staging started"
        )
        if policy is ConflictPolicy.MANUAL:
            return TransformResult(
                success=False, session=session, conflicts=conflicts, error=summary
            )
        if policy is ConflictPolicy.ABORT:
            result = rollback_staging_changes(session, reason=summary)
            result.success = False
            result.conflicts = conflicts
            return result
        if policy is ConflictPolicy.FORCE:
            warnings.warn(f"{summary}; committing anyway", ConflictWarning, stacklevel=2)
            logger.warning(
                "Forcing commit of %s over %d conflict(s)",
                session.target_version,
                len(conflicts),
            )
        elif policy is ConflictPolicy.SKIP:
            try:
                skipped = _skip_conflicting_files(session, conflicts)
            except OSError as exc:
                return TransformResult(
                    success=False,
                    session=session,
                    conflicts=conflicts,
                    error=f"Commit failed while skipping conflicting files: {exc}",
                )

    manifest = [staged.production_path for staged in generate_file_manifest(session)]
    try:
        committed = commit_staging(session)
    except StagingCommitError as exc:
        return TransformResult(
            success=False,
            session=session,
            error=f"Commit failed: {exc}",
            files_committed=list(exc.committed),
            conflicts=conflicts,
            skipped=skipped,
        )
    except StagingError as exc:
        return TransformResult(
            success=False, session=session, error=f"Commit failed: {exc}", conflicts=conflicts
        )

    try:
        add_transformation_entry(
            history_path(session.repo_root),
            session.target_version,
            commit_sha,
            TransformationStatus.TRANSFORMED,
        )
    except TransformationHistoryError as exc:
        logger.error("Committed %s but could not update history: %s", session.target_version, exc)
        return TransformResult(
            success=True,
            session=committed,
            files_committed=manifest,
            conflicts=conflicts,
            skipped=skipped,
            error=f"Transformation history not updated: {exc}",
        )

    return TransformResult(
        success=True,
        session=committed,
        files_committed=manifest,
        conflicts=conflicts,
        skipped=skipped,
    )


def rollback_staging_changes(
    session: StagingSession, reason: str | None = None
) -> TransformResult:
    """Roll back without committing; ``reason`` is reported and logged."""
    try:
        rolled_back = rollback_staging(session)
    except StagingError as exc:
        return TransformResult(success=False, session=session, error=f"Rollback failed: {exc}")
    if reason:
        logger.info("Rolled back %s: %s", session.target_version, reason)
    return TransformResult(
        success=True,
        session=rolled_back,
        error=f"Rolled back: {reason}" if reason else None,
    )


# ============================================================================
# Orphan recovery
# ============================================================================


def check_for_orphaned_staging(
    repo_root: Path, *, layout: StagingLayout | None = None
) -> list[OrphanedSession]:
    layout = layout or StagingLayout.for_repo(Path(repo_root))
    return detect_orphaned_staging(layout.staging_area)


def get_orphan_info(
    root_dir: Path, *, layout: StagingLayout | None = None
) -> StagingInspection:
    """Inspection report for an orphaned session (raises on unreadable metadata)."""
    return inspect_staging(Path(root_dir), layout=layout)


def recover_orphaned_staging(
    root_dir: Path,
    action: RecoveryAction | str,
    *,
    policy: ConflictPolicy | str = ConflictPolicy.MANUAL,
    layout: StagingLayout | None = None,
) -> TransformResult:
    """Commit, roll back, or inspect a session left behind by another process.

    Commit is only possible once both agents completed (``agent2-complete``
    or ``ready``); earlier sessions would need the agents re-run, which is
    outside this workflow.
    """
    action = RecoveryAction(action)
    try:
        session = load_staging_context(root_dir, layout=layout)
    except (StagingError, ConfigError) as exc:
        return TransformResult(
            success=False, error=f"Invalid or corrupted staging directory {root_dir}: {exc}"
        )

    if action is RecoveryAction.ROLLBACK:
        return rollback_staging_changes(session, reason="Manual orphan recovery")

    if action is RecoveryAction.INSPECT:
        try:
            inspection = inspect_staging(session)
        except StagingError as exc:
            return TransformResult(success=False, session=session, error=str(exc))
        return TransformResult(success=True, session=session, inspection=inspection)

    if session.status not in (StagingStatus.AGENT2_COMPLETE, StagingStatus.READY):
        return TransformResult(
            success=False,
            session=session,
            error=(
                f"Cannot commit: staging status is '{session.status}', "
                "need 'ready' or 'agent2-complete'"
            ),
        )
    if session.status is StagingStatus.AGENT2_COMPLETE:
        try:
            session = update_staging_status(session, StagingStatus.READY)
        except StagingError as exc:
            return TransformResult(success=False, session=session, error=str(exc))
    return commit_staging_to_production(session, policy)


__all__ = [
    "ConflictPolicy",
    "RecoveryAction",
    "TransformResult",
    "check_for_orphaned_staging",
    "commit_staging_to_production",
    "get_orphan_info",
    "get_staging_output_dirs",
    "initialize_staging",
    "record_agent1_complete",
    "record_agent2_complete",
    "recover_orphaned_staging",
    "rollback_staging_changes",
]
