"""Staging session creation, loading and status updates."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

from speck_cli.core.config import locate_project_root

from .errors import (
    StagingIOError,
    StagingNotFoundError,
    StagingParseError,
    StagingValidationError,
)
from .models import (
    AgentResult,
    AgentResults,
    FileCategory,
    StagingMetadata,
    StagingSession,
    StagingStatus,
)
from .paths import StagingLayout
from .store import read_metadata, write_metadata
from .transitions import is_terminal, validate_transition

logger = logging.getLogger(__name__)

AGENT_SLOTS = ("agent1", "agent2")


def _now_utc() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _terminal_status(root_dir: Path) -> StagingStatus | None:
    """Status of a leftover session root if it is terminal, else None."""
    try:
        status = read_metadata(root_dir).status
    except (StagingNotFoundError, StagingParseError, StagingIOError):
        return None
    return status if is_terminal(status) else None


def create_staging_directory(
    repo_root: Path,
    target_version: str,
    previous_version: str | None = None,
    *,
    layout: StagingLayout | None = None,
) -> StagingSession:
    """Create ``<staging_area>/<target_version>`` and its initial metadata.

    The four category subdirectories are created up front so agents can be
    pointed at them directly. An existing session directory is refused and
    left untouched, unless its ``staging.json`` records a terminal status:
    such a finished root is removed and the session is created afresh. If
    anything fails after the root was created, the partial root is removed
    before :class:`StagingIOError` is raised.
    """
    layout = layout or StagingLayout.for_repo(Path(repo_root))
    root_dir = layout.session_dir(target_version)

    if root_dir.exists():
        leftover = _terminal_status(root_dir)
        if leftover is None:
            raise StagingValidationError(
                f"Staging directory already exists for {target_version}: {root_dir}. "
                "Commit, roll back, or remove the existing session first."
            )
        logger.info(
            "Replacing finished staging session %s (%s) at %s",
            target_version,
            leftover,
            root_dir,
        )
        try:
            shutil.rmtree(root_dir)
        except OSError as exc:
            raise StagingIOError(
                root_dir, f"Cannot remove finished staging directory {root_dir}: {exc}"
            ) from exc

    metadata = StagingMetadata(
        status=StagingStatus.STAGING,
        target_version=target_version,
        previous_version=previous_version,
        start_time=_now_utc(),
        agent_results=AgentResults(agent1=None, agent2=None),
        production_baseline=None,
    )

    try:
        root_dir.mkdir(parents=True)
    except OSError as exc:
        raise StagingIOError(
            root_dir, f"Cannot create staging directory {root_dir}: {exc}"
        ) from exc

    try:
        for category in FileCategory:
            (root_dir / category.value).mkdir()
        write_metadata(root_dir, metadata)
    except OSError as exc:
        shutil.rmtree(root_dir, ignore_errors=True)
        raise StagingIOError(
            root_dir, f"Cannot initialize staging directory {root_dir}: {exc}"
        ) from exc
    except StagingIOError:
        shutil.rmtree(root_dir, ignore_errors=True)
        raise

    logger.info("Created staging session %s at %s", target_version, root_dir)
    return StagingSession(
        root_dir=root_dir,
        target_version=target_version,
        layout=layout,
        metadata=metadata,
    )


def load_staging_context(
    root_dir: Path, *, layout: StagingLayout | None = None
) -> StagingSession:
    """Rebuild a session handle from an existing ``staging.json``.

    Without an explicit layout, the project root is found by walking up
    from ``root_dir`` to the nearest directory containing ``.speck/``.
    """
    root_dir = Path(root_dir).resolve()
    metadata = read_metadata(root_dir)

    if layout is None:
        repo_root = locate_project_root(root_dir)
        if repo_root is None:
            raise StagingNotFoundError(
                root_dir,
                f"Cannot locate the project root (.speck/) above {root_dir}",
            )
        layout = StagingLayout.for_repo(repo_root)

    return StagingSession(
        root_dir=root_dir,
        target_version=metadata.target_version,
        layout=layout,
        metadata=metadata,
    )


def update_staging_status(
    session: StagingSession, next_status: StagingStatus | str
) -> StagingSession:
    """Validate and persist a status transition.

    The persisted document only changes when the transition is legal and
    the atomic write succeeds.
    """
    requested = validate_transition(session.status, next_status)
    updated = session.with_status(requested)
    write_metadata(session.root_dir, updated.metadata)
    logger.info(
        "Staging %s: %s -> %s", session.target_version, session.status, requested
    )
    return updated


def record_agent_result(
    session: StagingSession, agent: str, result: AgentResult
) -> StagingSession:
    """Store the outcome of agent 1 or agent 2 in ``staging.json``."""
    if agent not in AGENT_SLOTS:
        raise StagingValidationError(
            f"Unknown agent slot {agent!r}: expected one of {', '.join(AGENT_SLOTS)}"
        )
    if is_terminal(session.status):
        raise StagingValidationError(
            f"Cannot record {agent} result: staging {session.target_version} "
            f"is already {session.status}"
        )

    agent_results = session.metadata.agent_results.model_copy(update={agent: result})
    metadata = session.metadata.model_copy(update={"agent_results": agent_results})
    write_metadata(session.root_dir, metadata)
    logger.info(
        "Recorded %s result for %s (success=%s, %d file(s))",
        agent,
        session.target_version,
        result.success,
        len(result.files_written),
    )
    return session.with_metadata(metadata)


__all__ = [
    "AGENT_SLOTS",
    "create_staging_directory",
    "load_staging_context",
    "record_agent_result",
    "update_staging_status",
]
