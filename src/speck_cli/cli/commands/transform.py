"""Staging lifecycle commands for the transform-upstream workflow.

Provides CLI access to the staging engine so the slash command can drive a
transformation across separate process invocations:

- ``speck transform init <version>`` -- create staging and print OUTPUT_DIRs
- ``speck transform record-agent <dir> <agent>`` -- record an agent result
- ``speck transform commit <dir>`` -- check drift and commit
- ``speck transform rollback <dir>`` -- discard staging
- ``speck transform status`` -- list orphaned staging sessions
- ``speck transform inspect <dir>`` / ``recover <dir> <action>``
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from speck_cli.core.config import ConfigError, locate_project_root
from speck_cli.staging import (
    AgentResult,
    FileConflict,
    StagingError,
    StagingInspection,
    load_staging_context,
)
from speck_cli.upstream.transform import (
    ConflictPolicy,
    RecoveryAction,
    TransformResult,
    check_for_orphaned_staging,
    commit_staging_to_production,
    get_orphan_info,
    get_staging_output_dirs,
    initialize_staging,
    record_agent1_complete,
    record_agent2_complete,
    recover_orphaned_staging,
    rollback_staging_changes,
)


app = typer.Typer(
    name="transform",
    help="Staging lifecycle for upstream transformations",
    no_args_is_help=True,
)

console = Console()


def _repo_root() -> Path:
    cwd = Path.cwd().resolve()
    return locate_project_root(cwd) or cwd


def _output_error(json_mode: bool, error_message: str) -> None:
    if json_mode:
        print(json.dumps({"success": False, "error": error_message}))
    else:
        console.print(f"[red]Error:[/red] {error_message}")


def _print_conflicts(conflicts: list[FileConflict]) -> None:
    table = Table(title="Production changes since baseline")
    table.add_column("Path")
    table.add_column("Change")
    table.add_column("Baseline size", justify="right")
    table.add_column("Current size", justify="right")
    for conflict in conflicts:
        table.add_row(
            conflict.path,
            str(conflict.kind),
            "-" if conflict.baseline_state.size is None else str(conflict.baseline_state.size),
            "-" if conflict.current_state.size is None else str(conflict.current_state.size),
        )
    console.print(table)


def _print_inspection(inspection: StagingInspection) -> None:
    console.print(f"[bold]Staging {inspection.target_version}[/bold] ({inspection.status})")
    console.print(f"  Root: {inspection.root_dir}")
    console.print(f"  Started: {inspection.start_time}")
    if inspection.previous_version:
        console.print(f"  Previous version: {inspection.previous_version}")
    counts = inspection.file_counts
    console.print(
        "  Files: "
        + ", ".join(f"{name}={count}" for name, count in counts.items() if name != "total")
        + f" (total {counts['total']})"
    )
    if not inspection.baseline_captured:
        console.print("  [yellow]No production baseline captured[/yellow]")
    elif inspection.conflicts:
        _print_conflicts(inspection.conflicts)
    else:
        console.print("  [green]No production changes since baseline[/green]")


def _finish(json_mode: bool, result: TransformResult, success_message: str) -> None:
    if json_mode:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.success:
        console.print(f"[green]OK[/green] {success_message}")
        for path in result.files_committed:
            console.print(f"  [dim]{path}[/dim]")
        if result.skipped:
            console.print(f"  [yellow]Skipped {len(result.skipped)} conflicting file(s)[/yellow]")
    else:
        if result.conflicts:
            _print_conflicts(result.conflicts)
        console.print(f"[red]Error:[/red] {result.error}")
    if not result.success:
        raise typer.Exit(1)


@app.command()
def init(
    version: Annotated[str, typer.Argument(help="Upstream version to transform (e.g., v2.1.0)")],
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Create a staging session and print the agents' OUTPUT_DIRs."""
    result = initialize_staging(_repo_root(), version)
    if not result.success or result.session is None:
        _output_error(json_output, result.error or "Unknown error")
        raise typer.Exit(1)

    dirs = get_staging_output_dirs(result.session)
    if json_output:
        print(
            json.dumps(
                {
                    "success": True,
                    "root_dir": str(result.session.root_dir),
                    **{name: str(path) for name, path in dirs.items()},
                },
                indent=2,
            )
        )
        return
    console.print(f"[green]OK[/green] Staging ready at {result.session.root_dir}")
    for name, path in dirs.items():
        console.print(f"  {name}: {path}")


@app.command("record-agent")
def record_agent(
    staging_dir: Annotated[Path, typer.Argument(help="Staging root directory")],
    agent: Annotated[int, typer.Argument(help="Agent number (1 or 2)", min=1, max=2)],
    failed: Annotated[bool, typer.Option("--failed", help="The agent did not succeed")] = False,
    error: Annotated[Optional[str], typer.Option("--error", help="Agent error message")] = None,
    duration: Annotated[float, typer.Option("--duration", help="Agent run time in milliseconds", min=0)] = 0,
    files: Annotated[Optional[list[str]], typer.Option("--file", help="File written by the agent (repeatable)")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Record an agent's result and advance the staging status.

    A failed agent rolls the whole session back.
    """
    try:
        session = load_staging_context(staging_dir)
    except (StagingError, ConfigError) as exc:
        _output_error(json_output, str(exc))
        raise typer.Exit(1)

    agent_result = AgentResult(
        success=not failed,
        files_written=files or [],
        error=error,
        duration=duration,
    )
    recorder = record_agent1_complete if agent == 1 else record_agent2_complete
    result = recorder(session, agent_result)
    status = result.session.status if result.session else "unknown"
    _finish(json_output, result, f"Agent {agent} recorded; staging is {status}")


@app.command()
def commit(
    staging_dir: Annotated[Path, typer.Argument(help="Staging root directory")],
    policy: Annotated[ConflictPolicy, typer.Option("--policy", help="What to do with production conflicts")] = ConflictPolicy.MANUAL,
    commit_sha: Annotated[str, typer.Option("--commit-sha", help="Upstream release commit, recorded in history")] = "",
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Commit a ready staging session to production."""
    try:
        session = load_staging_context(staging_dir)
    except (StagingError, ConfigError) as exc:
        _output_error(json_output, str(exc))
        raise typer.Exit(1)

    result = commit_staging_to_production(session, policy, commit_sha=commit_sha)
    _finish(
        json_output,
        result,
        f"Committed {session.target_version}: {len(result.files_committed)} file(s)",
    )


@app.command()
def rollback(
    staging_dir: Annotated[Path, typer.Argument(help="Staging root directory")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Why the session is discarded")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Discard a staging session without touching production."""
    try:
        session = load_staging_context(staging_dir)
    except (StagingError, ConfigError) as exc:
        _output_error(json_output, str(exc))
        raise typer.Exit(1)

    result = rollback_staging_changes(session, reason)
    _finish(json_output, result, f"Rolled back {session.target_version}")


@app.command()
def status(
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """List staging sessions abandoned in a non-terminal state."""
    try:
        orphans = check_for_orphaned_staging(_repo_root())
    except ConfigError as exc:
        _output_error(json_output, str(exc))
        raise typer.Exit(1)

    if json_output:
        print(json.dumps({"orphans": [o.to_dict() for o in orphans]}, indent=2))
        return
    if not orphans:
        console.print("[green]No orphaned staging directories[/green]")
        return

    table = Table(title="Orphaned staging sessions")
    table.add_column("Version")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Directory")
    for orphan in orphans:
        table.add_row(
            orphan.target_version,
            str(orphan.status) if orphan.status else f"[red]unreadable[/red] ({orphan.error})",
            orphan.start_time or "-",
            str(orphan.root_dir),
        )
    console.print(table)
    console.print(
        "\n[dim]Use `speck transform recover <dir> commit|rollback|inspect`[/dim]"
    )


@app.command()
def inspect(
    staging_dir: Annotated[Path, typer.Argument(help="Staging root directory")],
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Show metadata, staged files and production drift for a session."""
    try:
        inspection = get_orphan_info(staging_dir)
    except (StagingError, ConfigError) as exc:
        _output_error(json_output, str(exc))
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(inspection.to_dict(), indent=2))
    else:
        _print_inspection(inspection)


@app.command()
def recover(
    staging_dir: Annotated[Path, typer.Argument(help="Orphaned staging root directory")],
    action: Annotated[RecoveryAction, typer.Argument(help="commit, rollback or inspect")],
    policy: Annotated[ConflictPolicy, typer.Option("--policy", help="Conflict policy when committing")] = ConflictPolicy.MANUAL,
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Recover an orphaned staging session."""
    result = recover_orphaned_staging(staging_dir, action, policy=policy)
    if result.inspection is not None and not json_output:
        _print_inspection(result.inspection)
        return
    _finish(json_output, result, f"Recovery action '{action}' completed")
