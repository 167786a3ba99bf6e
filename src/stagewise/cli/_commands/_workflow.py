# pyright: reportUnusedCallResult=false
# ruff: noqa: TC003, T201  # Path needed at runtime for cyclopts parameter parsing
"""Workflow commands: init, status, stage, complete, approve, check, complete-spec."""

import getpass
from pathlib import Path
from typing import Annotated

from cyclopts import Parameter

from stagewise.config import DEFAULT_PROTOCOL_NAME
from stagewise.engine import CheckReport, CompileOptions, Engine, init_workspace
from stagewise.exceptions import CheckFailedError, StagewiseError
from stagewise.snapshot import SnapshotManager
from stagewise.utils import atomic_write_bytes
from stagewise.workspace import WorkspaceLayout

from ._context import CLIContext, OutputFormat
from ._shared import (
    ExitCode,
    exit_code_for_exception,
    exit_with_error,
    format_json,
    format_table,
    get_cli_logger,
    get_console,
    get_error_console,
    load_engine,
)

# -----------------------------------------------------------------------------
# init
# -----------------------------------------------------------------------------


def init(
    *,
    project_name: Annotated[
        str, Parameter(name="--name", help="Project name (default: directory name)")
    ] = "",
) -> None:
    """Initialize a stagewise workspace.

    Creates .stagewise/ with the default protocol, templates, config and state
    in the project root (the current directory unless --project-root is
    given). Existing files are left untouched.

    Args:
        project_name: Project name written to config.
    """
    ctx = CLIContext.get_current()
    root = (ctx.project_root or Path.cwd()).resolve()
    layout = WorkspaceLayout(root)
    protocol = str(ctx.protocol) if ctx.protocol is not None else DEFAULT_PROTOCOL_NAME

    try:
        layout.workspace_dir.mkdir(parents=True, exist_ok=True)
        created = init_workspace(
            layout,
            protocol=protocol,
            project_name=project_name,
            logger=get_cli_logger(layout, "init"),
        )
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    console = get_console()
    console.print(f"Initialized workspace in {layout.workspace_dir}")
    for path in created:
        console.print(f"  created {path.relative_to(root).as_posix()}")


# -----------------------------------------------------------------------------
# status
# -----------------------------------------------------------------------------


def _stage_status(engine: Engine, stage_id: str) -> str:
    stage = engine.stage(stage_id)
    if engine.state.is_completed(stage_id):
        return "completed"
    if engine.is_ready(stage):
        return "ready"
    return "blocked"


def status(
    *,
    format: Annotated[  # noqa: A002
        OutputFormat, Parameter(name=["--format", "-f"], help="Output format")
    ] = OutputFormat.TEXT,
) -> None:
    """Show workflow status.

    Args:
        format: Output format (text, table or json).
    """
    try:
        engine = load_engine("status")
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    state = engine.state
    rows = [
        [
            stage.id,
            stage.display_name,
            _stage_status(engine, stage.id),
            ", ".join(stage.depends_on),
        ]
        for stage in engine.protocol.stages
    ]

    if format == OutputFormat.JSON:
        print(
            format_json(
                {
                    "project": engine.config.project_name,
                    "protocol": engine.protocol.name,
                    "completed_stages": state.completed_stages,
                    "current_stage": state.current_stage,
                    "stages": {row[0]: row[2] for row in rows},
                    "missing_approvals": engine.missing_approvals(),
                }
            )
        )
        return

    print(f"Project: {engine.config.project_name}")
    print(f"Protocol: {engine.protocol.name}")
    print(f"State: {engine.layout.state_path}")
    if state.completed_stages:
        print(f"Completed stages: {', '.join(state.completed_stages)}")
    else:
        print("Completed stages: (none)")
    if state.current_stage:
        print(f"Current stage: {state.current_stage}")

    if format == OutputFormat.TABLE:
        print()
        print(format_table(["Stage", "Name", "Status", "Depends on"], rows))


# -----------------------------------------------------------------------------
# stage
# -----------------------------------------------------------------------------


def stage(
    stage_id: str,
    /,
    *,
    granularity: Annotated[
        str, Parameter(help="Override the task granularity")
    ] = "",
    max_tasks: Annotated[int, Parameter(help="Override the maximum task count")] = 0,
    prefer_parallel: Annotated[
        bool, Parameter(help="Prefer tasks that can run in parallel")
    ] = False,
    risk_bias: Annotated[str, Parameter(help="Override the risk bias")] = "",
    out: Annotated[
        Path | None, Parameter(name=["--out", "-o"], help="Also write the prompt here")
    ] = None,
    format: Annotated[  # noqa: A002
        OutputFormat, Parameter(name=["--format", "-f"], help="Output format")
    ] = OutputFormat.TEXT,
) -> None:
    """Compile and print the prompt for a stage.

    Args:
        stage_id: The stage to compile.
        granularity: Task granularity override.
        max_tasks: Maximum task count override.
        prefer_parallel: Parallel task preference override.
        risk_bias: Risk bias override.
        out: File to write the prompt to.
        format: Output format (text or json).
    """
    options = CompileOptions(
        granularity=granularity,
        max_tasks=max_tasks,
        prefer_parallel=prefer_parallel,
        risk_bias=risk_bias,
    )
    try:
        engine = load_engine("stage")
        compiled = engine.compile_prompt(engine.stage(stage_id), options)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    if format == OutputFormat.JSON:
        text = format_json(
            {
                "stage": compiled.stage_id,
                "prompt": compiled.text,
                "prompt_hash": compiled.prompt_hash,
            }
        )
    else:
        text = compiled.text

    if out is not None:
        try:
            atomic_write_bytes(out, text.encode("utf-8"))
        except OSError as e:
            exit_with_error(f"Failed to write {out}: {e}", ExitCode.IO_ERROR)
    print(text)


# -----------------------------------------------------------------------------
# complete / approve
# -----------------------------------------------------------------------------


def complete(
    stage_id: str,
    /,
    *files: Path,
    prompt_hash: Annotated[
        str, Parameter(help="Fingerprint of the prompt that produced the files")
    ] = "",
) -> None:
    """Mark a stage complete and store its output files.

    Args:
        stage_id: The stage being completed.
        files: Output files produced for the stage.
        prompt_hash: Prompt fingerprint printed by `stage --format json`.
    """
    try:
        engine = load_engine("complete")
        stored = engine.complete_stage(stage_id, files, prompt_hash=prompt_hash)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    console = get_console()
    console.print(f"Completed stage {stage_id}")
    for path in stored:
        console.print(f"  stored {path}")


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return "unknown"


def approve(
    stage_id: str,
    /,
    *,
    role: Annotated[str, Parameter(help="Role giving the approval")],
    by: Annotated[str, Parameter(help="Who approved (default: current user)")] = "",
    notes: Annotated[str, Parameter(help="Approval notes")] = "",
) -> None:
    """Record an approval for a stage.

    Args:
        stage_id: The stage being approved.
        role: The approving role; must be declared by the protocol.
        by: Name of the approver.
        notes: Free-form notes.
    """
    approver = by or _current_user()
    try:
        engine = load_engine("approve")
        warnings = engine.approve_stage(stage_id, role, approver, notes)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    console = get_console()
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    console.print(f"Recorded approval for stage {stage_id} (role: {role})")


# -----------------------------------------------------------------------------
# check / complete-spec
# -----------------------------------------------------------------------------


def _print_report(report: CheckReport) -> None:
    if report.is_empty:
        print("No issues found.")
        return
    print("Warnings (advisory):")
    for category in report.categories():
        messages = report.get(category)
        print(f"\n* {category} ({len(messages)})")
        for message in messages:
            print(f"  - {message}")


def check(
    *,
    fail_on_warnings: Annotated[
        bool, Parameter(help="Exit non-zero when any warning is found")
    ] = False,
) -> None:
    """Run advisory checks over the workspace.

    Args:
        fail_on_warnings: Treat warnings as a failure.
    """
    try:
        engine = load_engine("check")
        report = engine.check(fail_on_warnings=fail_on_warnings)
    except CheckFailedError as e:
        if isinstance(e.report, CheckReport):
            _print_report(e.report)
        exit_with_error(str(e), ExitCode.VALIDATION_ERROR)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    _print_report(report)


def complete_spec(
    *,
    warn_only: Annotated[
        bool, Parameter(help="Report missing stages and approvals without failing")
    ] = False,
    archive: Annotated[
        bool, Parameter(help="Create an archive snapshot after completion")
    ] = False,
    version: Annotated[
        str, Parameter(help="Archive name (default: the protocol version)")
    ] = "",
    tag: Annotated[
        list[str] | None, Parameter(help="Tag to apply to the archive (repeatable)")
    ] = None,
    notes: Annotated[str, Parameter(help="Notes for the archive")] = "",
) -> None:
    """Validate that every stage is completed and approved.

    Args:
        warn_only: Downgrade missing stages and approvals to warnings.
        archive: Archive the workspace afterwards.
        version: Archive name.
        tag: Archive tags.
        notes: Archive notes.
    """
    try:
        engine = load_engine("complete-spec")
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    report = engine.completion_report()
    error_console = get_error_console()
    for warning in report.warnings:
        error_console.print(f"[yellow]Warning:[/yellow] {warning}")

    problems: list[str] = []
    if report.missing_stages:
        problems.append(
            f"spec is not complete, missing stages: {', '.join(report.missing_stages)}"
        )
    if report.missing_approvals:
        problems.append(
            "spec is not approved, missing approvals: "
            f"{', '.join(report.missing_approvals)}"
        )
    for problem in problems:
        if not warn_only:
            exit_with_error(problem, ExitCode.VALIDATION_ERROR)
        error_console.print(f"[yellow]Warning:[/yellow] {problem}")

    if report.is_complete:
        print("All stages completed.")

    if archive:
        name = version or engine.state.spec_version
        if not name:
            exit_with_error(
                "archive version is required (set --version or the protocol version)",
                ExitCode.VALIDATION_ERROR,
            )
        manager = SnapshotManager.archives(
            engine.layout, logger=get_cli_logger(engine.layout, "complete-spec")
        )
        try:
            manager.create(
                name,
                tags=tag or (),
                notes=notes,
                protocol=CLIContext.get_current().protocol,
            )
        except (StagewiseError, OSError) as e:
            exit_with_error(str(e), exit_code_for_exception(e))
        print(f"Archived version {name}")
