"""Transformation staging engine.

Agents write their output into an isolated staging root; the result is
inspected, checked for production drift, and then committed to or rolled
back from the live tree. Public API surface -- consumers import from this
package.
"""

from .baseline import capture_production_baseline, snapshot_production_tree
from .commit import commit_staging, rollback_staging
from .conflicts import detect_file_conflicts
from .discovery import generate_file_manifest, list_staged_files
from .errors import (
    ConflictWarning,
    IllegalTransitionError,
    StagingCommitError,
    StagingError,
    StagingIOError,
    StagingNotFoundError,
    StagingParseError,
    StagingValidationError,
)
from .inspect import get_staging_status, inspect_staging
from .manager import (
    create_staging_directory,
    load_staging_context,
    record_agent_result,
    update_staging_status,
)
from .models import (
    AgentResult,
    AgentResults,
    ConflictKind,
    FileBaseline,
    FileCategory,
    FileConflict,
    OrphanedSession,
    ProductionBaseline,
    StagedFile,
    StagingInspection,
    StagingMetadata,
    StagingSession,
    StagingStatus,
)
from .orphans import detect_orphaned_staging
from .paths import METADATA_FILENAME, StagingLayout
from .transitions import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    is_terminal,
    legal_next_statuses,
    validate_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AgentResult",
    "AgentResults",
    "ConflictKind",
    "ConflictWarning",
    "FileBaseline",
    "FileCategory",
    "FileConflict",
    "IllegalTransitionError",
    "METADATA_FILENAME",
    "OrphanedSession",
    "ProductionBaseline",
    "StagedFile",
    "StagingCommitError",
    "StagingError",
    "StagingIOError",
    "StagingInspection",
    "StagingLayout",
    "StagingMetadata",
    "StagingNotFoundError",
    "StagingParseError",
    "StagingSession",
    "StagingStatus",
    "StagingValidationError",
    "TERMINAL_STATUSES",
    "capture_production_baseline",
    "commit_staging",
    "create_staging_directory",
    "detect_file_conflicts",
    "detect_orphaned_staging",
    "generate_file_manifest",
    "get_staging_status",
    "inspect_staging",
    "is_terminal",
    "legal_next_statuses",
    "list_staged_files",
    "load_staging_context",
    "record_agent_result",
    "rollback_staging",
    "snapshot_production_tree",
    "update_staging_status",
    "validate_transition",
]
